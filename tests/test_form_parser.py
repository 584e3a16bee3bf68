"""Unit tests for the form parser."""
import base64
from urllib.parse import urlencode

import pytest

from processor.exceptions import ValidationError
from web.form_parser import FORM_FIELDS, get_header, parse_form

BOUNDARY = 'talkboundary123'


def multipart_body(fields, files=()):
    """Build a multipart/form-data body."""
    chunks = []
    for name, value in fields.items():
        chunks.append(
            f'--{BOUNDARY}\r\n'
            f'Content-Disposition: form-data; name="{name}"\r\n\r\n'
            f'{value}\r\n'.encode('utf-8')
        )
    for name, filename, content_type, content in files:
        chunks.append(
            f'--{BOUNDARY}\r\n'
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
            f'Content-Type: {content_type}\r\n\r\n'.encode('utf-8')
            + content + b'\r\n'
        )
    chunks.append(f'--{BOUNDARY}--\r\n'.encode('utf-8'))
    return b''.join(chunks)


def multipart_event(body, base64_encoded=True):
    return {
        'httpMethod': 'POST',
        'path': '/generate-ical',
        'headers': {'Content-Type': f'multipart/form-data; boundary={BOUNDARY}'},
        'body': base64.b64encode(body).decode('ascii') if base64_encoded else body.decode('utf-8'),
        'isBase64Encoded': base64_encoded
    }


class TestParseForm:
    """Test cases for parse_form."""

    def test_parse_urlencoded(self):
        """Test parsing a url-encoded form body."""
        event = {
            'headers': {'content-type': 'application/x-www-form-urlencoded'},
            'body': urlencode({
                'title': 'Colloquium',
                'starttime': '2024-03-01T14:00',
                'endtime': '',
                'venue': 'Room 101, East Wing'
            }),
            'isBase64Encoded': False
        }

        fields, uploads = parse_form(event)

        assert fields['title'] == 'Colloquium'
        assert fields['starttime'] == '2024-03-01T14:00'
        assert fields['endtime'] == ''
        assert fields['venue'] == 'Room 101, East Wing'
        assert uploads == []

    def test_parse_fills_missing_fields(self):
        """Test that absent form fields default to empty strings."""
        event = {
            'headers': {'Content-Type': 'application/x-www-form-urlencoded'},
            'body': 'title=Colloquium'
        }

        fields, _ = parse_form(event)

        for name in FORM_FIELDS:
            assert name in fields
        assert fields['speaker'] == ''

    def test_parse_multipart_with_file(self):
        """Test parsing fields and a PDF upload from a multipart body."""
        pdf = b'%PDF-1.4\n\x00\xff binary \r\n content'
        body = multipart_body(
            {'title': 'Colloquium', 'speaker': 'José Núñez', 'description': 'Line one\r\nLine two'},
            files=[('pdfFile', 'slides.pdf', 'application/pdf', pdf)]
        )

        fields, uploads = parse_form(multipart_event(body))

        assert fields['title'] == 'Colloquium'
        assert fields['speaker'] == 'José Núñez'
        assert fields['description'] == 'Line one\r\nLine two'
        assert len(uploads) == 1
        assert uploads[0].field_name == 'pdfFile'
        assert uploads[0].filename == 'slides.pdf'
        assert uploads[0].content_type == 'application/pdf'
        assert uploads[0].content == pdf

    def test_parse_multipart_empty_file_input(self):
        """Test that an unselected file input yields an empty upload."""
        body = multipart_body(
            {'title': 'Colloquium'},
            files=[('pdfFile', '', 'application/octet-stream', b'')]
        )

        fields, uploads = parse_form(multipart_event(body, base64_encoded=False))

        assert fields['title'] == 'Colloquium'
        assert len(uploads) == 1
        assert uploads[0].content == b''

    def test_parse_missing_body(self):
        """Test that a missing body is rejected."""
        with pytest.raises(ValidationError):
            parse_form({'headers': {'Content-Type': 'application/x-www-form-urlencoded'}})

    def test_parse_invalid_base64(self):
        """Test that an undecodable base64 body is rejected."""
        event = {
            'headers': {'Content-Type': 'application/x-www-form-urlencoded'},
            'body': 'not base64!!',
            'isBase64Encoded': True
        }

        with pytest.raises(ValidationError):
            parse_form(event)

    def test_parse_multipart_missing_boundary(self):
        """Test that a multipart body without a boundary is rejected."""
        event = {
            'headers': {'Content-Type': 'multipart/form-data'},
            'body': multipart_body({'title': 'Colloquium'}).decode('utf-8')
        }

        with pytest.raises(ValidationError):
            parse_form(event)

    def test_parse_unsupported_content_type(self):
        """Test that non-form content types are rejected."""
        event = {
            'headers': {'Content-Type': 'application/json'},
            'body': '{"title": "Colloquium"}'
        }

        with pytest.raises(ValidationError):
            parse_form(event)

    def test_get_header_case_insensitive(self):
        """Test header lookup ignores case."""
        headers = {'CONTENT-TYPE': 'text/plain'}

        assert get_header(headers, 'content-type') == 'text/plain'
        assert get_header(headers, 'accept') == ''
        assert get_header(None, 'accept') == ''
