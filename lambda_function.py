"""AWS Lambda handler for the Talk Calendar Generator."""
import json
import logging
import os
import tempfile
import time
from typing import Dict, Any
from urllib.parse import quote

from processor.calendar_builder import CalendarBuilder
from processor.exceptions import DeliveryError, SerializationError, ValidationError
from processor.models import TalkEvent
from processor.time_normalizer import TimeNormalizer
from storage.attachment_store import AttachmentStore
from storage.document_spool import DocumentSpool
from web.form_page import render_form
from web.form_parser import parse_form

ATTACHMENT_FIELD = 'pdfFile'


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def content_disposition(filename: str) -> str:
    """
    Build an attachment Content-Disposition header for a filename.

    Non-ASCII titles are carried in the RFC 5987 filename* parameter with
    an ASCII fallback in filename.
    """
    fallback = filename.encode('ascii', 'replace').decode('ascii').replace('"', "'")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def error_response(status_code: int, message: str, error: Exception) -> Dict[str, Any]:
    """Build a JSON error response."""
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps({
            'message': message,
            'error': str(error),
            'error_type': type(error).__name__
        })
    }


def handle_form_page() -> Dict[str, Any]:
    """Serve the talk submission form."""
    return {
        'statusCode': 200,
        'headers': {'Content-Type': 'text/html; charset=utf-8'},
        'body': render_form()
    }


def handle_generate(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Generate the calendar file for a submitted talk.

    Args:
        event: API Gateway proxy event carrying the form submission

    Returns:
        Proxy response with the calendar file as an attachment download
    """
    logger = logging.getLogger(__name__)

    base_url = os.environ.get('BASE_URL', 'http://localhost:3000')
    bucket_name = os.environ.get('UPLOAD_BUCKET', 'talk-calendar-uploads')
    spool_dir = os.environ.get('SPOOL_DIR', tempfile.gettempdir())
    uid_domain = os.environ.get('UID_DOMAIN', CalendarBuilder.DEFAULT_UID_DOMAIN)

    fields, uploads = parse_form(event)

    # Title and times are checked before anything is written to S3
    talk = TalkEvent.from_form(fields)
    builder = CalendarBuilder(uid_domain=uid_domain)
    times = TimeNormalizer().normalize(talk.start_local, talk.end_local)
    builder.derive_filename(talk.title.strip())

    attachment = None
    pdf_uploads = [u for u in uploads if u.field_name == ATTACHMENT_FIELD]
    if pdf_uploads:
        store = AttachmentStore(bucket_name=bucket_name, base_url=base_url)
        attachment = store.store(pdf_uploads[0])
    talk.attachment = attachment

    document = builder.build(talk, times.start, times.end)

    spool = DocumentSpool(spool_dir)
    path = spool.write(document)
    try:
        content = spool.read(path)
    finally:
        spool.discard(path)

    logger.info(
        f"Generated calendar file {document.filename}",
        extra={'uid': document.uid, 'has_attachment': attachment is not None}
    )

    return {
        'statusCode': 200,
        'headers': {
            'Content-Type': f"{document.MEDIA_TYPE}; charset=utf-8",
            'Content-Disposition': content_disposition(document.filename)
        },
        'body': content.decode('utf-8')
    }


ROUTES = {
    '/': {'GET': lambda event: handle_form_page()},
    '/generate-ical': {'POST': handle_generate},
}


def dispatch(event: Dict[str, Any], path: str, method: str) -> Dict[str, Any]:
    """
    Route a request and map errors to proxy responses.

    Args:
        event: API Gateway proxy event
        path: Request path
        method: Upper-cased HTTP method

    Returns:
        API Gateway proxy response dict
    """
    logger = logging.getLogger(__name__)

    methods = ROUTES.get(path)
    if methods is None:
        return error_response(404, 'Not found', LookupError(path))

    handler = methods.get(method)
    if handler is None:
        response = error_response(405, 'Method not allowed', LookupError(method))
        response['headers']['Allow'] = ', '.join(sorted(methods))
        return response

    try:
        return handler(event)

    except ValidationError as e:
        logger.warning(
            f"Rejected talk submission: {str(e)}",
            extra={'error_type': type(e).__name__}
        )
        return error_response(400, 'Invalid talk submission', e)

    except (DeliveryError, SerializationError) as e:
        logger.error(
            f"Error while generating iCal file: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return error_response(500, 'Error while generating iCal file', e)

    except Exception as e:
        logger.error(
            f"Request failed: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return error_response(500, 'Request failed', e)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the Talk Calendar Generator.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        API Gateway proxy response dict
    """
    log_level = os.environ.get('LOG_LEVEL', 'INFO')

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    path = event.get('path') or '/'
    method = (event.get('httpMethod') or 'GET').upper()
    logger.info(
        f"Request started",
        extra={'path': path, 'method': method}
    )

    response = dispatch(event, path, method)

    duration = time.time() - start_time
    logger.info(
        f"Request completed",
        extra={
            'path': path,
            'status_code': response['statusCode'],
            'duration_seconds': round(duration, 2)
        }
    )
    return response
