"""Encode raw image bytes into data URIs, and back."""

from __future__ import annotations

import base64
import binascii
import mimetypes
import re
from pathlib import Path
from typing import BinaryIO
from urllib.parse import unquote_to_bytes

from core.errors import EncodingError

DEFAULT_MIME = "application/octet-stream"

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*?)(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)
_IMG_SRC_RE = re.compile(r'src="(.*?)"')


def _read_all(raw: bytes | bytearray | memoryview | BinaryIO) -> bytes:
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw)
    try:
        data = raw.read()
    except (OSError, ValueError, AttributeError) as exc:
        raise EncodingError(f"Could not read image data: {exc}") from exc
    if not isinstance(data, (bytes, bytearray)):
        raise EncodingError(f"Image handle returned {type(data).__name__}, expected bytes")
    return bytes(data)


def encode(raw: bytes | bytearray | memoryview | BinaryIO, mime_hint: str | None = None) -> str:
    """Return ``data:<mime>;base64,<data>`` for raw bytes or a readable binary handle.

    Deterministic for identical input. No size limit is enforced here.
    """
    data = _read_all(raw)
    mime = (mime_hint or "").strip() or DEFAULT_MIME
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def encode_file(path: str | Path) -> str:
    """Encode a file on disk, guessing its MIME type from the extension."""
    path = Path(path)
    mime, _ = mimetypes.guess_type(str(path))
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise EncodingError(f"Could not read image file {path}: {exc}", path=str(path)) from exc
    return encode(data, mime)


def decode(data_uri: str) -> tuple[str, bytes]:
    """Split a data URI into ``(mime, bytes)``."""
    match = _DATA_URI_RE.match(data_uri)
    if match is None:
        raise EncodingError("Payload is not a data URI")

    mime = match.group("mime") or "text/plain"
    data = match.group("data")
    if match.group("b64"):
        try:
            return mime, base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise EncodingError(f"Invalid base64 in data URI: {exc}") from exc

    # Non-base64 data URIs carry percent-encoded text
    return mime, unquote_to_bytes(data)


# Dropped HTML carries the image as an <img src="..."> attribute
def extract_image_src(html: str) -> str | None:
    match = _IMG_SRC_RE.search(html)
    if match is None or not match.group(1):
        return None
    return match.group(1)
