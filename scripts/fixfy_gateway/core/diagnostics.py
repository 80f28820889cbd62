"""Log-safe views of provider payloads."""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping


_MAX_DETAIL_CHARS = 500
_MAX_INLINE_CHARS = 120
_OMITTED_KEYS = {"b64_json", "base64", "image", "image_bytes", "data", "url", "img"}
_SECRET_KEYS = {"authorization", "x-key", "api_key", "apikey", "key", "token"}


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit].rstrip() + "..."


def sanitize_payload(payload: Any) -> Any:
    """Replace credentials, base64 blobs and image references with placeholders."""
    if payload is None or isinstance(payload, (int, float, bool)):
        return payload
    if isinstance(payload, str):
        if payload.startswith("data:"):
            return f"<data-uri:{len(payload)}>"
        return _clip(payload, _MAX_INLINE_CHARS * 4)
    if isinstance(payload, (bytes, bytearray)):
        return f"<bytes:{len(payload)}>"
    if isinstance(payload, Path):
        return str(payload)
    if is_dataclass(payload) and not isinstance(payload, type):
        return sanitize_payload(asdict(payload))
    if isinstance(payload, Mapping):
        sanitized: MutableMapping[str, Any] = {}
        for key, value in payload.items():
            lowered = str(key).lower()
            if lowered in _SECRET_KEYS:
                sanitized[str(key)] = "<redacted>"
                continue
            if lowered in _OMITTED_KEYS and isinstance(value, (str, bytes, bytearray)):
                sanitized[str(key)] = "<omitted>"
                continue
            sanitized[str(key)] = sanitize_payload(value)
        return sanitized
    if isinstance(payload, (list, tuple)):
        return [sanitize_payload(item) for item in payload]
    return _clip(str(payload), _MAX_INLINE_CHARS)


def summarize_error(payload: Any, text: str = "") -> str:
    detail = ""
    if payload is not None:
        try:
            detail = json.dumps(sanitize_payload(payload), ensure_ascii=True)
        except (TypeError, ValueError):
            detail = str(payload)
    if not detail:
        detail = text or ""
    detail = detail.strip().replace("\n", " ")
    return _clip(detail, _MAX_DETAIL_CHARS)
