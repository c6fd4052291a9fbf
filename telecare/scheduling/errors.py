"""Error taxonomy for the scheduling core.

Every error carries a ``detail`` string that is safe to show to the person
who triggered the action. The HTTP layer maps each class to a status code.
"""


class SchedulingError(Exception):
    default_detail = 'The request could not be completed.'

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(SchedulingError):
    """Malformed input: unparseable time, end before start, unknown slot."""
    default_detail = 'Invalid scheduling input.'


class NotFound(SchedulingError):
    default_detail = 'Record not found.'


class NotPermitted(SchedulingError):
    default_detail = 'You are not allowed to change this appointment.'


class SlotAlreadyTaken(SchedulingError):
    default_detail = 'This time is already booked. Please choose another time.'


class InvalidTransition(SchedulingError):
    default_detail = 'This action is no longer available for this appointment.'


class StaleState(SchedulingError):
    default_detail = 'This appointment was changed by someone else. Refresh and retry.'


class RoomAllocationFailed(SchedulingError):
    default_detail = 'Could not allocate a session room. Please retry.'


class SessionNotJoinable(SchedulingError):
    default_detail = 'This session cannot be joined right now.'


class RemoteUnavailable(SchedulingError):
    default_detail = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'


class NotificationDeliveryFailed(SchedulingError):
    default_detail = 'Could not send meeting invite email.'
