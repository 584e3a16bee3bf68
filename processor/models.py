"""Data models for talk calendar generation."""
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass
class Attachment:
    """Reference to a previously stored file."""
    locator: str
    filename: Optional[str] = None
    content_type: Optional[str] = None


@dataclass
class UploadedFile:
    """File part pulled out of a multipart form submission."""
    field_name: str
    filename: str
    content_type: str
    content: bytes


@dataclass
class TalkEvent:
    """Talk details as submitted through the form."""
    title: str
    speaker: str
    affiliation: str
    host: str
    description: str
    venue: str
    remark: str
    start_local: str
    end_local: Optional[str] = None
    attachment: Optional[Attachment] = None

    @classmethod
    def from_form(
        cls,
        fields: Mapping[str, str],
        attachment: Optional[Attachment] = None
    ) -> 'TalkEvent':
        """
        Build a TalkEvent from submitted form fields.

        Missing keys are treated as empty strings and a blank end time
        as absent.

        Args:
            fields: Mapping of form field names to values
            attachment: Optional reference to an uploaded file

        Returns:
            TalkEvent instance
        """
        def field(name: str) -> str:
            return fields.get(name) or ''

        end_local = field('endtime').strip() or None

        return cls(
            title=field('title'),
            speaker=field('speaker'),
            affiliation=field('affiliation'),
            host=field('host'),
            description=field('description'),
            venue=field('venue'),
            remark=field('remark'),
            start_local=field('starttime'),
            end_local=end_local,
            attachment=attachment
        )


@dataclass
class NormalizedTimes:
    """Start and end stamps in the reference timezone."""
    start: str
    end: str


@dataclass(frozen=True)
class CalendarDocument:
    """Rendered calendar file and its suggested filename."""
    content: str
    filename: str
    uid: str
    dtstamp: str

    MEDIA_TYPE = 'text/calendar'

    def encode(self) -> bytes:
        return self.content.encode('utf-8')
