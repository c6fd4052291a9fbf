"""Sends meeting invites through the external email service, best-effort."""

import logging

import httpx

from telecare.core import config
from telecare.scheduling.errors import NotificationDeliveryFailed

logger = logging.getLogger(__name__)

SEND_MEETING_INVITE_PATH = "/send-meeting-invite"


class NotificationDispatcher:
    """An empty base URL disables delivery; ``transport`` lets tests stub HTTP."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self._base_url = (config.NOTIFICATION_SERVICE_URL if base_url is None else base_url).rstrip("/")
        self._timeout = config.NOTIFICATION_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self._base_url)

    @property
    def invite_url(self) -> str:
        return f"{self._base_url}{SEND_MEETING_INVITE_PATH}"

    def send_session_invite(self, patient_email: str, doctor_email: str, room_id: str) -> bool:
        try:
            self._deliver(
                {
                    "patient_email": patient_email,
                    "doctor_email": doctor_email,
                    "room_id": room_id,
                }
            )
        except NotificationDeliveryFailed as exc:
            logger.warning("Meeting invite for room %s not delivered: %s", room_id, exc.detail)
            return False

        logger.info("Meeting invite for room %s sent to %s", room_id, patient_email)
        return True

    def _deliver(self, payload: dict) -> None:
        if not self.enabled:
            raise NotificationDeliveryFailed("NOTIFICATION_SERVICE_URL is not configured.")

        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(self.invite_url, json=payload)
        except httpx.TimeoutException as exc:
            raise NotificationDeliveryFailed("Email request timed out.") from exc
        except httpx.HTTPError as exc:
            raise NotificationDeliveryFailed(f"Email service unreachable: {exc}") from exc

        if response.is_error:
            raise NotificationDeliveryFailed(f"Email service error: {response.status_code}")


_default_dispatcher: NotificationDispatcher | None = None


def get_notification_dispatcher() -> NotificationDispatcher:
    global _default_dispatcher
    if _default_dispatcher is None:
        _default_dispatcher = NotificationDispatcher()
    return _default_dispatcher
