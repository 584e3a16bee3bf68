"""Calendar document builder for talk events."""
import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from icalendar import Alarm, Calendar, Event, Timezone, TimezoneStandard

from processor.exceptions import FilenameError, SerializationError, ValidationError
from processor.models import CalendarDocument, TalkEvent
from processor.time_normalizer import (
    REFERENCE_OFFSET,
    REFERENCE_TZID,
    REFERENCE_TZNAME,
    REFERENCE_TZURL,
    TimeNormalizer,
    format_utc_timestamp,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
UidFactory = Callable[[datetime], str]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CalendarBuilder:
    """Builder assembling a single-event calendar document for a talk."""

    PRODUCT_ID = '-//Van Abel//talk-calendar//EN'
    FILE_EXTENSION = '.ics'
    REMINDER_BEFORE = timedelta(minutes=30)
    MAX_FILENAME_BYTES = 255
    DEFAULT_UID_DOMAIN = 'talk-calendar.local'

    # Characters rejected by common filesystems plus control characters
    _UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f]')

    def __init__(
        self,
        clock: Optional[Clock] = None,
        uid_factory: Optional[UidFactory] = None,
        uid_domain: str = DEFAULT_UID_DOMAIN
    ):
        """
        Initialize the builder.

        Args:
            clock: Callable returning the current UTC instant
            uid_factory: Callable deriving a UID from the current instant
            uid_domain: Domain suffix used by the default UID scheme
        """
        self.clock = clock or utc_now
        self.uid_factory = uid_factory or self._default_uid
        self.uid_domain = uid_domain

    def generate(
        self,
        event: TalkEvent,
        normalizer: Optional[TimeNormalizer] = None
    ) -> CalendarDocument:
        """
        Normalize the event's times and build its calendar document.

        Args:
            event: Submitted talk details
            normalizer: TimeNormalizer to use (default: one-hour default)

        Returns:
            CalendarDocument for the talk
        """
        normalizer = normalizer or TimeNormalizer()
        times = normalizer.normalize(event.start_local, event.end_local)
        return self.build(event, times.start, times.end)

    def build(
        self,
        event: TalkEvent,
        start: str,
        end: str,
        now: Optional[datetime] = None,
        uid: Optional[str] = None
    ) -> CalendarDocument:
        """
        Build the calendar document for a talk.

        Args:
            event: Submitted talk details
            start: Start stamp (YYYYMMDDTHHMMSS) in the reference zone
            end: End stamp (YYYYMMDDTHHMMSS) in the reference zone
            now: Creation instant (defaults to the builder clock)
            uid: Unique identifier (defaults to the builder UID factory)

        Returns:
            CalendarDocument holding the serialized text and filename

        Raises:
            ValidationError: If the title or either stamp is missing or
                malformed
            FilenameError: If the title cannot be used as a filename
            SerializationError: If rendering the document fails
        """
        title = event.title.strip() if event.title else ''
        filename = self.derive_filename(title)

        start_dt = parse_timestamp(start)
        end_dt = parse_timestamp(end)
        if end_dt < start_dt:
            raise ValidationError(f"DTEND {end} precedes DTSTART {start}")

        if now is None:
            now = self.clock()
        if uid is None:
            uid = self.uid_factory(now)

        calendar = Calendar()
        calendar.add('prodid', self.PRODUCT_ID)
        calendar.add('version', '2.0')
        calendar.add('calscale', 'GREGORIAN')
        calendar.add_component(self._reference_timezone())

        vevent = Event()
        vevent.add('dtstamp', now)
        vevent.add('uid', uid)
        # Floating wall-clock values qualified by the declared VTIMEZONE
        vevent.add('dtstart', start_dt.replace(tzinfo=None), parameters={'TZID': REFERENCE_TZID})
        vevent.add('dtend', end_dt.replace(tzinfo=None), parameters={'TZID': REFERENCE_TZID})
        vevent.add('summary', title)

        url = ''.join((event.remark or '').split())
        if url:
            vevent.add('url', url)

        vevent.add('description', self.compose_description(event))
        vevent.add('location', event.venue or '')
        vevent.add('status', 'CONFIRMED')
        vevent.add('transp', 'TRANSPARENT')

        if event.attachment is not None:
            vevent.add('attach', event.attachment.locator)

        alarm = Alarm()
        alarm.add('action', 'DISPLAY')
        alarm.add('description', title)
        alarm.add('trigger', -self.REMINDER_BEFORE)
        vevent.add_component(alarm)

        calendar.add_component(vevent)

        try:
            content = calendar.to_ical().decode('utf-8')
        except (ValueError, TypeError, UnicodeDecodeError) as e:
            logger.error(f"Failed to serialize calendar for '{title}': {e}")
            raise SerializationError(f"Failed to serialize calendar: {e}") from e

        logger.info(
            f"Built calendar document {filename}",
            extra={'uid': uid, 'dtstart': start, 'dtend': end}
        )

        return CalendarDocument(
            content=content,
            filename=filename,
            uid=uid,
            dtstamp=format_utc_timestamp(now)
        )

    def derive_filename(self, title: str) -> str:
        """
        Derive the download filename from a talk title.

        Args:
            title: Stripped talk title

        Returns:
            Filename of the form <title>.ics

        Raises:
            ValidationError: If the title is empty
            FilenameError: If the title contains characters that cannot
                appear in a filename
        """
        if not title:
            raise ValidationError("Missing required field: title")

        if self._UNSAFE_FILENAME.search(title):
            raise FilenameError(
                f"Title {title!r} contains characters not allowed in a filename"
            )

        if not title.strip('.'):
            raise FilenameError(f"Title {title!r} cannot be used as a filename")

        filename = f"{title}{self.FILE_EXTENSION}"
        if len(filename.encode('utf-8')) > self.MAX_FILENAME_BYTES:
            raise FilenameError(
                f"Filename for title is longer than {self.MAX_FILENAME_BYTES} bytes"
            )

        return filename

    def compose_description(self, event: TalkEvent) -> str:
        """Combine the labelled text fields into the event description."""
        return '\n'.join([
            f"Speaker: {event.speaker or ''}",
            f"Affiliation: {event.affiliation or ''}",
            f"Host: {event.host or ''}",
            f"Abstract: {event.description or ''}",
        ])

    def _reference_timezone(self) -> Timezone:
        standard = TimezoneStandard()
        standard.add('tzname', REFERENCE_TZNAME)
        standard.add('tzoffsetfrom', REFERENCE_OFFSET)
        standard.add('tzoffsetto', REFERENCE_OFFSET)
        standard.add('dtstart', datetime(1970, 1, 1))

        vtimezone = Timezone()
        vtimezone.add('tzid', REFERENCE_TZID)
        vtimezone.add('tzurl', REFERENCE_TZURL)
        vtimezone.add('x-lic-location', REFERENCE_TZID)
        vtimezone.add_component(standard)
        return vtimezone

    def _default_uid(self, now: datetime) -> str:
        millis = int(now.timestamp() * 1000)
        return f"{millis}-{uuid.uuid4().hex}@{self.uid_domain}"
