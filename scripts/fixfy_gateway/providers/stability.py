"""Stability AI v1 text-to-image adapter."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from fixfy_gateway.core.contracts import GatewayResult, ResolvedRequest
from fixfy_gateway.core.credentials import Credential
from fixfy_gateway.core.normalize import failure_for_status, image_from_b64, malformed
from fixfy_gateway.core.registry import FAMILY_STABILITY
from .base import CallContext, RawResponse, WireRequest
from .http import send_http


LABEL = "Stability AI"
BLOCKED_FINISH_REASONS = {"CONTENT_FILTERED", "ERROR"}


class StabilityAdapter:
    family = FAMILY_STABILITY

    def build(self, resolved: ResolvedRequest, credential: Credential) -> WireRequest:
        # Text-to-image only; a source image never reaches this endpoint.
        body: Dict[str, Any] = {
            "text_prompts": [{"text": resolved.prompt, "weight": 1}],
            "cfg_scale": 7,
            "width": resolved.width,
            "height": resolved.height,
            "samples": 1,
            "steps": 30,
        }
        return WireRequest(
            method="POST",
            url=f"{resolved.endpoint}{resolved.model}/text-to-image",
            headers={
                "Authorization": f"Bearer {credential.secret}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            body=body,
            credential=credential,
        )

    def send(self, wire: WireRequest, context: CallContext) -> RawResponse:
        return send_http(wire, context, LABEL)

    def normalize(self, raw: RawResponse, resolved: ResolvedRequest) -> GatewayResult:
        status_failure = failure_for_status(raw, resolved, LABEL)
        if status_failure is not None:
            return status_failure
        artifacts = raw.payload.get("artifacts") if isinstance(raw.payload, Mapping) else None
        usable: List[Mapping[str, Any]] = [
            item
            for item in (artifacts or [])
            if isinstance(item, Mapping) and str(item.get("finishReason") or "SUCCESS").upper() not in BLOCKED_FINISH_REASONS
        ]
        for artifact in usable:
            result = image_from_b64(artifact.get("base64"), resolved)
            if result is not None:
                return result
        if artifacts:
            return malformed(resolved, "Stability AI returned no usable image (content filtered or failed).")
        return malformed(resolved, "No image received from Stability AI.")
