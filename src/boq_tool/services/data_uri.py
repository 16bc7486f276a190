"""
Data URI helpers.

Uploads travel to the extraction service as data:<mimetype>;base64,<payload>
and item images are embedded in exports the same way.
"""
import base64
import binascii
import mimetypes
import re

_DATA_URI_RE = re.compile(r'^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[\w.+-]+=[^;,]*)*);base64,(?P<payload>.*)$', re.DOTALL)


def encode_data_uri(payload: bytes, mime_type: str) -> str:
    """Encode raw bytes as a base64 data URI."""
    encoded = base64.b64encode(payload).decode('ascii')
    return f"data:{mime_type};base64,{encoded}"


def decode_data_uri(uri: str) -> tuple[str, bytes]:
    """
    Split a base64 data URI into (mime_type, payload bytes).

    Raises ValueError for anything that is not a base64 data URI.
    """
    if not isinstance(uri, str):
        raise ValueError("Data URI must be a string")
    match = _DATA_URI_RE.match(uri.strip())
    if not match:
        raise ValueError("Expected a data URI of the form 'data:<mimetype>;base64,<data>'")

    mime_type = match.group('mime') or 'application/octet-stream'
    try:
        payload = base64.b64decode(match.group('payload'), validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload in data URI: {e}") from e
    return mime_type, payload


def is_data_uri(value: str) -> bool:
    return isinstance(value, str) and value.startswith('data:')


def guess_mime_type(filename: str, default: str = 'application/octet-stream') -> str:
    """Guess a MIME type from a file name, e.g. "plan.pdf" -> "application/pdf"."""
    mime_type, _ = mimetypes.guess_type(filename or '')
    return mime_type or default
