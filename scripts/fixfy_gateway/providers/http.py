"""Plain-HTTP transport shared by the REST adapters."""

from __future__ import annotations

from typing import Any, Mapping, Optional

import requests

from fixfy_gateway.core.errors import ProviderCallError
from .base import CallContext, RawResponse, WireRequest


def _decode_json(response: requests.Response) -> Any:
    content_type = (response.headers.get("content-type") or "").lower()
    if "json" not in content_type and response.content[:1] not in (b"{", b"["):
        return None
    try:
        return response.json()
    except ValueError:
        return None


def to_raw(response: requests.Response, *, binary: bool = False) -> RawResponse:
    payload = _decode_json(response)
    text = ""
    if payload is None and not (binary and 200 <= response.status_code < 300):
        try:
            text = response.text or ""
        except (UnicodeDecodeError, ValueError):
            text = ""
    return RawResponse(
        status=response.status_code,
        payload=payload,
        content=response.content if binary else b"",
        headers=dict(response.headers or {}),
        text=text,
    )


def send_http(
    wire: WireRequest,
    context: CallContext,
    label: str,
    *,
    url: Optional[str] = None,
    method: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
    binary: bool = False,
) -> RawResponse:
    verb = (method or wire.method).upper()
    target = url or wire.url
    try:
        if verb == "GET":
            response = context.session.get(target, headers=dict(headers or wire.headers), timeout=context.timeout)
        else:
            response = context.session.post(
                target,
                headers=dict(headers or wire.headers),
                json=wire.body,
                timeout=context.timeout,
            )
    except requests.RequestException as exc:
        raise ProviderCallError(f"{label} request failed: {exc}") from exc
    return to_raw(response, binary=binary)
