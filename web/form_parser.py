"""Form parser for API Gateway proxy events."""
import base64
import binascii
import io
import logging
from typing import Any, Dict, List, Mapping, Tuple

from werkzeug.exceptions import HTTPException
from werkzeug.formparser import FormDataParser
from werkzeug.http import parse_options_header

from processor.exceptions import ValidationError
from processor.models import UploadedFile

logger = logging.getLogger(__name__)

FORM_FIELDS = [
    'title',
    'speaker',
    'starttime',
    'endtime',
    'venue',
    'affiliation',
    'host',
    'description',
    'remark',
]

URLENCODED = 'application/x-www-form-urlencoded'
MULTIPART = 'multipart/form-data'


def get_header(headers: Mapping[str, str], name: str) -> str:
    """Case-insensitive header lookup."""
    for key, value in (headers or {}).items():
        if key.lower() == name.lower():
            return value or ''
    return ''


def parse_form(event: Dict[str, Any]) -> Tuple[Dict[str, str], List[UploadedFile]]:
    """
    Parse the form fields and uploaded files out of a proxy event.

    Args:
        event: API Gateway proxy event with a form body

    Returns:
        Tuple of (fields, uploads). Every name in FORM_FIELDS is present
        in fields, defaulting to an empty string.

    Raises:
        ValidationError: If the body is missing, has an unsupported
            content type, or cannot be decoded
    """
    content_type = get_header(event.get('headers'), 'content-type')
    body = _read_body(event)

    mimetype, options = parse_options_header(content_type)
    mimetype = mimetype.lower() or URLENCODED
    if mimetype not in (URLENCODED, MULTIPART):
        raise ValidationError(f"Unsupported form content type: {content_type}")

    parser = FormDataParser(silent=False)
    try:
        _, form, files = parser.parse(io.BytesIO(body), mimetype, len(body), options)
    except (ValueError, HTTPException) as e:
        raise ValidationError(f"Form body could not be parsed: {e}") from e

    fields = dict(form.items())
    uploads = [
        UploadedFile(
            field_name=name,
            filename=storage.filename or '',
            content_type=storage.content_type or 'application/octet-stream',
            content=storage.read()
        )
        for name, storage in files.items(multi=True)
    ]

    for name in FORM_FIELDS:
        fields.setdefault(name, '')

    logger.debug(
        f"Parsed form with {len(fields)} fields and {len(uploads)} uploads"
    )
    return fields, uploads


def _read_body(event: Dict[str, Any]) -> bytes:
    body = event.get('body')
    if body is None:
        raise ValidationError("Request body is empty")

    if event.get('isBase64Encoded'):
        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(f"Request body is not valid base64: {e}") from e

    if isinstance(body, bytes):
        return body
    return body.encode('utf-8')
