"""Utility helpers for image inputs and references."""

from __future__ import annotations

import base64
import binascii
import re
from pathlib import Path
from typing import Optional, Tuple

from .contracts import ImageInput
from .errors import InvalidRequestError

_URL_RE = re.compile(r"^https?://", re.IGNORECASE)
_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^;,]*)*?);base64,(?P<data>.*)$", re.DOTALL)
_SUFFIX_MIME = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def is_url(value: str) -> bool:
    return bool(_URL_RE.match(value or ""))


def is_data_uri(value: str) -> bool:
    return bool(value) and value.strip().lower().startswith("data:")


def sniff_mime(data: bytes, fallback: str = "image/png") -> str:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return fallback


def to_data_uri(data: bytes, mime_type: Optional[str] = None) -> str:
    mime = (mime_type or "").split(";", 1)[0].strip() or sniff_mime(data)
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def parse_data_uri(value: str) -> Tuple[bytes, str]:
    match = _DATA_URI_RE.match(value.strip())
    if not match:
        raise InvalidRequestError("Invalid image format: expected a base64 data URI.")
    try:
        data = base64.b64decode(match.group("data"), validate=False)
    except (binascii.Error, ValueError) as exc:
        raise InvalidRequestError(f"Invalid image data: {exc}") from exc
    if not data:
        raise InvalidRequestError("Invalid image data: empty payload.")
    return data, match.group("mime") or sniff_mime(data)


def _decode_bare_base64(value: str) -> Optional[bytes]:
    """Decode bare base64 only when it carries a known image signature."""
    compact = "".join(value.split())
    if len(compact) < 16:
        return None
    try:
        data = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        return None
    if sniff_mime(data, fallback="") == "":
        return None
    return data


def read_input_bytes(value: ImageInput) -> Tuple[bytes, str]:
    """Return raw bytes and a MIME type for an image input.

    Files are read only from ``Path`` values. Strings must be a data URI or
    bare base64 image data; they are never treated as filesystem paths.
    """
    if isinstance(value, (bytes, bytearray)):
        data = bytes(value)
        if not data:
            raise InvalidRequestError("Image input is empty.")
        return data, sniff_mime(data)
    if isinstance(value, Path):
        return _read_path(value)
    if isinstance(value, str):
        text = value.strip()
        if is_data_uri(text):
            return parse_data_uri(text)
        if is_url(text):
            raise InvalidRequestError("URL image inputs are not supported by this provider; send a data URI.")
        decoded = _decode_bare_base64(text)
        if decoded is not None:
            return decoded, sniff_mime(decoded)
        raise InvalidRequestError("Invalid image format: expected a base64 data URI or base64 image data.")
    raise InvalidRequestError(f"Unsupported image input type: {type(value).__name__}")


def image_reference(value: ImageInput) -> str:
    """Return a URL or data URI for an image input."""
    if isinstance(value, str):
        text = value.strip()
        if is_url(text) or is_data_uri(text):
            return text
    data, mime = read_input_bytes(value)
    return to_data_uri(data, mime)


def _read_path(path: Path) -> Tuple[bytes, str]:
    resolved = path.expanduser().resolve()
    try:
        data = resolved.read_bytes()
    except OSError as exc:
        raise InvalidRequestError(f"Unable to read image file {resolved}: {exc}") from exc
    if not data:
        raise InvalidRequestError(f"Image file {resolved} is empty.")
    return data, _SUFFIX_MIME.get(resolved.suffix.lower()) or sniff_mime(data)


def extension_from_mime(mime_type: Optional[str], fallback: str = "png") -> str:
    if mime_type:
        mime = mime_type.lower()
        if mime.endswith("/jpeg") or mime.endswith("/jpg"):
            return "jpg"
        if mime.endswith("/png"):
            return "png"
        if mime.endswith("/webp"):
            return "webp"
        if "/" in mime:
            return mime.split("/", 1)[1]
    return fallback
