"""Time normalizer for converting submitted times into calendar stamps."""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from processor.exceptions import ValidationError
from processor.models import NormalizedTimes

logger = logging.getLogger(__name__)

REFERENCE_TZID = 'Asia/Shanghai'
REFERENCE_TZNAME = 'CST'
REFERENCE_TZURL = 'https://www.tzurl.org/zoneinfo-outlook/Asia/Shanghai'
REFERENCE_OFFSET = timedelta(hours=8)
REFERENCE_TZ = timezone(REFERENCE_OFFSET, REFERENCE_TZNAME)

FORM_TIME_FORMAT = '%Y-%m-%dT%H:%M'

_STAMP_PATTERN = re.compile(r'^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})$')


def format_timestamp(dt: datetime) -> str:
    """
    Render a datetime as a floating YYYYMMDDTHHMMSS stamp.

    Args:
        dt: Datetime whose wall-clock fields are rendered as-is

    Returns:
        Fifteen character stamp
    """
    return (
        f"{dt.year:04d}{dt.month:02d}{dt.day:02d}"
        f"T{dt.hour:02d}{dt.minute:02d}{dt.second:02d}"
    )


def format_utc_timestamp(dt: datetime) -> str:
    """
    Render a datetime as a UTC YYYYMMDDTHHMMSSZ stamp.

    Naive datetimes are assumed to already be in UTC.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return f"{format_timestamp(dt)}Z"


def parse_timestamp(stamp: str) -> datetime:
    """
    Read a YYYYMMDDTHHMMSS stamp back as an instant in the reference zone.

    Args:
        stamp: Stamp produced by format_timestamp

    Returns:
        Timezone-aware datetime in the reference zone

    Raises:
        ValidationError: If the stamp is missing or malformed
    """
    match = _STAMP_PATTERN.match(stamp or '')
    if not match:
        raise ValidationError(f"Malformed calendar timestamp: {stamp!r}")

    try:
        return datetime(*(int(part) for part in match.groups()), tzinfo=REFERENCE_TZ)
    except ValueError as e:
        raise ValidationError(f"Invalid calendar timestamp {stamp!r}: {e}") from e


def default_form_times(now: Optional[datetime] = None) -> tuple[str, str]:
    """
    Start and end values used to pre-fill the input form.

    Args:
        now: Current instant (defaults to the system clock)

    Returns:
        Tuple of (start, end) strings one hour apart
    """
    if now is None:
        now = datetime.now(timezone.utc)
    local_now = to_reference_zone(now)
    local_end = local_now + timedelta(hours=1)
    return local_now.strftime(FORM_TIME_FORMAT), local_end.strftime(FORM_TIME_FORMAT)


def to_reference_zone(dt: datetime) -> datetime:
    """Attach or convert a datetime to the reference zone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=REFERENCE_TZ)
    return dt.astimezone(REFERENCE_TZ)


class TimeNormalizer:
    """Normalizer turning client-local date-times into calendar stamps."""

    DEFAULT_DURATION = timedelta(hours=1)

    INPUT_FORMATS = [
        '%Y-%m-%dT%H:%M',       # HTML datetime-local
        '%Y-%m-%dT%H:%M:%S',    # datetime-local with seconds
        '%Y-%m-%d %H:%M',       # space separated
        '%Y-%m-%d %H:%M:%S',    # space separated with seconds
        '%Y-%m-%dT%H:%M:%S.%f', # datetime-local with milliseconds
        '%Y-%m-%d %H:%M:%S.%f', # space separated with fractions
    ]

    def __init__(self, default_duration: Optional[timedelta] = None):
        """
        Initialize the normalizer.

        Args:
            default_duration: Length used when no end time is supplied
                (default: 1 hour)
        """
        self.default_duration = default_duration or self.DEFAULT_DURATION

    def normalize(self, start: str, end: Optional[str] = None) -> NormalizedTimes:
        """
        Convert a start and optional end time into reference zone stamps.

        Args:
            start: Submitted start date-time
            end: Submitted end date-time, blank or None when absent

        Returns:
            NormalizedTimes holding both stamps

        Raises:
            ValidationError: If the start is missing or unparseable, or the
                end precedes the start
        """
        if not start or not start.strip():
            raise ValidationError("Missing required field: starttime")

        start_dt = self.parse_local(start)
        if start_dt is None:
            raise ValidationError(f"Invalid start time format: {start!r}")

        end_dt = None
        if end and end.strip():
            end_dt = self.parse_local(end)
            if end_dt is None:
                logger.warning(
                    f"Invalid end time format {end!r}, "
                    f"defaulting to {self.default_duration} after start"
                )

        if end_dt is None:
            end_dt = start_dt + self.default_duration

        if end_dt < start_dt:
            raise ValidationError(
                f"End time {end!r} is earlier than start time {start!r}"
            )

        return NormalizedTimes(
            start=format_timestamp(start_dt),
            end=format_timestamp(end_dt)
        )

    def parse_local(self, value: str) -> Optional[datetime]:
        """
        Parse a submitted date-time into the reference zone.

        Values without an offset are wall-clock times in the reference zone;
        values with an offset are converted into it.

        Args:
            value: Date-time string in one of INPUT_FORMATS, optionally
                followed by a UTC offset

        Returns:
            Timezone-aware datetime or None if parsing fails
        """
        value = value.strip()
        if value[-1:] in ('Z', 'z'):
            value = value[:-1] + '+00:00'

        for fmt in self.INPUT_FORMATS:
            for candidate in (fmt, fmt + '%z'):
                try:
                    parsed = datetime.strptime(value, candidate)
                except ValueError:
                    continue
                return to_reference_zone(parsed.replace(microsecond=0))

        return None
