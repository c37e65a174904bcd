# Error taxonomy for the event calendar


class CalendarError(Exception):
    """Base class for every error raised by the calendar core."""


class ValidationError(CalendarError):
    """User input rejected before any mutation."""


class EmptyDescriptionError(ValidationError):
    def __init__(self, message: str = "Event description cannot be empty."):
        super().__init__(message)


class PastDateError(ValidationError):
    def __init__(self, scheduled_at=None):
        self.scheduled_at = scheduled_at
        super().__init__("Event date and time must be in the future.")


class NotFoundError(CalendarError):
    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event with id {event_id} was not found.")


class StoreError(CalendarError):
    """Write to the backing file failed; the change was not persisted."""

    def __init__(self, message: str, path=None):
        self.path = path
        super().__init__(message)


class PermissionDeniedError(StoreError):
    pass


class IOFailureError(StoreError):
    pass


class CorruptDataError(CalendarError):
    """Persisted content could not be parsed into events."""
