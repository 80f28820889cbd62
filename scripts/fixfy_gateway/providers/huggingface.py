"""Hugging Face Inference API adapter; the response body is the image."""

from __future__ import annotations

from typing import Any, Dict

from fixfy_gateway.core.contracts import GatewayResult, ResolvedRequest
from fixfy_gateway.core.credentials import Credential
from fixfy_gateway.core.diagnostics import summarize_error
from fixfy_gateway.core.normalize import failure_for_status, image_result, malformed
from fixfy_gateway.core.registry import FAMILY_BLOB
from fixfy_gateway.core.utils import image_reference, sniff_mime, to_data_uri
from .base import CallContext, RawResponse, WireRequest
from .http import send_http


LABEL = "Hugging Face"


def accepts_source_image(model: str) -> bool:
    return "stable-diffusion" in model


class HuggingFaceAdapter:
    family = FAMILY_BLOB

    def build(self, resolved: ResolvedRequest, credential: Credential) -> WireRequest:
        inputs: Any = resolved.prompt
        if resolved.is_edit and accepts_source_image(resolved.model):
            inputs = {
                "prompt": resolved.prompt,
                "image": image_reference(resolved.image),
                "strength": resolved.strength,
            }
        body: Dict[str, Any] = {
            "inputs": inputs,
            "parameters": {
                "guidance_scale": 7.5,
                "num_inference_steps": 25 if resolved.is_edit else 20,
            },
        }
        return WireRequest(
            method="POST",
            url=f"{resolved.endpoint}{resolved.model}",
            headers={
                "Authorization": f"Bearer {credential.secret}",
                "Content-Type": "application/json",
                "Accept": "image/png",
            },
            body=body,
            credential=credential,
        )

    def send(self, wire: WireRequest, context: CallContext) -> RawResponse:
        return send_http(wire, context, LABEL, binary=True)

    def normalize(self, raw: RawResponse, resolved: ResolvedRequest) -> GatewayResult:
        status_failure = failure_for_status(raw, resolved, LABEL)
        if status_failure is not None:
            return status_failure
        if raw.payload is not None:
            return malformed(
                resolved,
                "Hugging Face returned JSON where image bytes were expected.",
                details=summarize_error(raw.payload),
            )
        if not raw.content:
            return malformed(resolved, "No image received from Hugging Face.")
        mime = raw.content_type if raw.content_type.startswith("image/") else sniff_mime(raw.content)
        return image_result(to_data_uri(raw.content, mime), resolved)
