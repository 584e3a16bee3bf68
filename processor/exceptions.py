"""Exception types raised while generating talk calendars."""


class TalkCalendarError(Exception):
    """Base class for talk calendar errors."""


class ValidationError(TalkCalendarError):
    """Submitted field values are missing or malformed."""


class FilenameError(ValidationError):
    """Title cannot be turned into a usable download filename."""


class SerializationError(TalkCalendarError):
    """Calendar document could not be rendered."""


class DeliveryError(TalkCalendarError):
    """Storing an upload or spooling a generated document failed."""
