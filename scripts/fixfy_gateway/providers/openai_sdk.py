"""Helpers for calling OpenAI-compatible endpoints through the openai SDK."""

from __future__ import annotations

import json
from typing import Any, Callable, Mapping

import openai
from openai import OpenAI

from fixfy_gateway.core.errors import ProviderCallError
from .base import CallContext, RawResponse, WireRequest


ClientFactory = Callable[[str, str, float], Any]


def default_client_factory(api_key: str, base_url: str, timeout: float) -> OpenAI:
    # One dispatch is one attempt; the SDK's own retry loop stays off.
    return OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)


def to_plain(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if hasattr(value, "model_dump_json"):
        try:
            return json.loads(value.model_dump_json())
        except (TypeError, ValueError):
            pass
    if hasattr(value, "model_dump"):
        try:
            return to_plain(value.model_dump())
        except (TypeError, ValueError):
            pass
    if hasattr(value, "__dict__"):
        return {str(k): to_plain(v) for k, v in value.__dict__.items() if not str(k).startswith("_")}
    return str(value)


def call_sdk(
    call: Callable[..., Any],
    kwargs: Mapping[str, Any],
    label: str,
) -> RawResponse:
    """Run one SDK call and capture the outcome as a ``RawResponse``.

    HTTP status errors become a response with that status so they are
    classified the same way as plain-HTTP adapters; any other SDK failure
    raises ``ProviderCallError``.
    """
    try:
        response = call(**kwargs)
    except openai.APIStatusError as exc:
        return RawResponse(
            status=exc.status_code,
            payload=to_plain(exc.body) if exc.body is not None else None,
            text=exc.message,
        )
    except openai.OpenAIError as exc:
        # Connection, timeout and response-validation failures carry no status.
        raise ProviderCallError(f"{label} request failed: {exc}") from exc
    return RawResponse(status=200, payload=to_plain(response))


def sdk_client(wire: WireRequest, context: CallContext, factory: ClientFactory) -> Any:
    if wire.credential is None:
        raise ProviderCallError("No credential attached to the provider call.")
    return factory(wire.credential.secret, wire.url, context.timeout)
