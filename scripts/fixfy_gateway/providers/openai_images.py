"""OpenAI Images adapter (direct image generation, no edit endpoint)."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from fixfy_gateway.core.contracts import GatewayResult, ResolvedRequest
from fixfy_gateway.core.credentials import Credential
from fixfy_gateway.core.normalize import failure_for_status, image_from_b64, image_from_reference, malformed
from fixfy_gateway.core.prompts import fold_edit_prompt
from fixfy_gateway.core.registry import FAMILY_IMAGES
from .base import CallContext, RawResponse, WireRequest
from .openai_sdk import ClientFactory, call_sdk, default_client_factory, sdk_client


LABEL = "OpenAI"


def _is_gpt_image(model: str) -> bool:
    return model.startswith("gpt-image")


class OpenAIImagesAdapter:
    family = FAMILY_IMAGES

    def __init__(self, client_factory: Optional[ClientFactory] = None) -> None:
        self._client_factory = client_factory or default_client_factory

    def build(self, resolved: ResolvedRequest, credential: Credential) -> WireRequest:
        prompt = resolved.prompt
        if resolved.is_edit:
            # No true edit mode here: the edit intent travels as an elaborated prompt.
            prompt = fold_edit_prompt(resolved.prompt, resolved.strength)
        kwargs: Dict[str, Any] = {
            "model": resolved.model,
            "prompt": prompt,
            "n": 1,
            "size": f"{resolved.width}x{resolved.height}",
        }
        if _is_gpt_image(resolved.model):
            kwargs["quality"] = "high"
        else:
            kwargs["quality"] = "standard"
            kwargs["response_format"] = "b64_json"
        return WireRequest(method="SDK", url=resolved.endpoint, body=kwargs, credential=credential)

    def send(self, wire: WireRequest, context: CallContext) -> RawResponse:
        client = sdk_client(wire, context, self._client_factory)
        return call_sdk(client.images.generate, wire.body, LABEL)

    def normalize(self, raw: RawResponse, resolved: ResolvedRequest) -> GatewayResult:
        status_failure = failure_for_status(raw, resolved, LABEL)
        if status_failure is not None:
            return status_failure
        data = raw.payload.get("data") if isinstance(raw.payload, Mapping) else None
        first = data[0] if isinstance(data, list) and data and isinstance(data[0], Mapping) else {}
        result = image_from_b64(first.get("b64_json"), resolved) or image_from_reference(first.get("url"), resolved)
        if result is None:
            return malformed(resolved, "No image received from OpenAI.")
        return result
