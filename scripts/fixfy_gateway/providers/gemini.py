"""Google Gemini adapter (analysis and estimates via google-genai)."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from fixfy_gateway.core.contracts import GatewayResult, ResolvedRequest
from fixfy_gateway.core.credentials import Credential
from fixfy_gateway.core.errors import InvalidRequestError, ProviderCallError
from fixfy_gateway.core.normalize import detections_from_reply, estimate_from_reply, failure_for_status
from fixfy_gateway.core.prompts import ANALYSIS_PROMPT, ESTIMATE_SYSTEM_PROMPT, estimate_prompt
from fixfy_gateway.core.registry import FAMILY_GEMINI
from fixfy_gateway.core.utils import read_input_bytes, to_data_uri
from .base import CallContext, RawResponse, WireRequest

logger = logging.getLogger(__name__)

LABEL = "Google AI"

GeminiClientFactory = Callable[[str, float], Any]


def default_client_factory(api_key: str, timeout: float) -> genai.Client:
    # HttpOptions.timeout is in milliseconds.
    return genai.Client(api_key=api_key, http_options=types.HttpOptions(timeout=int(timeout * 1000)))


def _extract_status_code(exc: Exception) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code
    for token in str(exc).split():
        if token.isdigit():
            return int(token)
    return None


class GeminiAdapter:
    family = FAMILY_GEMINI

    def __init__(self, client_factory: Optional[GeminiClientFactory] = None) -> None:
        self._client_factory = client_factory or default_client_factory

    def build(self, resolved: ResolvedRequest, credential: Credential) -> WireRequest:
        body: Dict[str, Any] = {
            "model": resolved.model,
            "config": {
                "temperature": 0.4,
                "max_output_tokens": 8000,
                "response_mime_type": "application/json",
            },
        }
        if resolved.mode == "analyze":
            if resolved.image is None:
                raise InvalidRequestError("Image is required for analysis.")
            data, mime = read_input_bytes(resolved.image)
            body["prompt"] = ANALYSIS_PROMPT
            body["image"] = to_data_uri(data, mime)
        elif resolved.mode == "estimate":
            body["system_instruction"] = ESTIMATE_SYSTEM_PROMPT
            body["prompt"] = estimate_prompt(resolved.prompt)
        else:
            raise InvalidRequestError(f"{LABEL} does not support {resolved.mode}.")
        return WireRequest(method="SDK", url=resolved.endpoint, body=body, credential=credential)

    def _contents(self, body: Dict[str, Any]) -> List[Any]:
        contents: List[Any] = [body["prompt"]]
        image = body.get("image")
        if image is not None:
            data, mime = read_input_bytes(image)
            contents.append(types.Part.from_bytes(data=data, mime_type=mime))
        return contents

    def send(self, wire: WireRequest, context: CallContext) -> RawResponse:
        if wire.credential is None:
            raise ProviderCallError("No credential attached to the provider call.")
        body = wire.body
        client = self._client_factory(wire.credential.secret, context.timeout)
        config = types.GenerateContentConfig(
            system_instruction=body.get("system_instruction"),
            **body["config"],
        )
        try:
            response = client.models.generate_content(
                model=body["model"],
                contents=self._contents(body),
                config=config,
            )
        except genai_errors.APIError as exc:
            status = _extract_status_code(exc) or 500
            return RawResponse(
                status=status,
                payload=getattr(exc, "details", None),
                text=getattr(exc, "message", None) or str(exc),
            )
        except (httpx.HTTPError, OSError) as exc:
            logger.debug("%s transport failure: %s", LABEL, exc)
            raise ProviderCallError(f"{LABEL} request failed: {exc}") from exc
        text = getattr(response, "text", None)
        return RawResponse(status=200, payload={"text": text}, text=text or "")

    def normalize(self, raw: RawResponse, resolved: ResolvedRequest) -> GatewayResult:
        status_failure = failure_for_status(raw, resolved, resolved.label or LABEL)
        if status_failure is not None:
            return status_failure
        text = raw.payload.get("text") if isinstance(raw.payload, dict) else None
        if resolved.mode == "analyze":
            return detections_from_reply(text, resolved)
        return estimate_from_reply(text, resolved)
