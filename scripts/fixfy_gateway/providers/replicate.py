"""Replicate predictions adapter (submit, then poll)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from fixfy_gateway.core.contracts import GatewayResult, ResolvedRequest
from fixfy_gateway.core.credentials import Credential
from fixfy_gateway.core.normalize import failure, failure_for_status, first_reference, malformed
from fixfy_gateway.core.utils import image_reference
from fixfy_gateway.core.registry import FAMILY_JOB
from .base import CallContext, RawResponse, WireRequest
from .http import send_http

logger = logging.getLogger(__name__)

LABEL = "Replicate"
SUCCESS_STATUSES = {"succeeded"}
FAILURE_STATUSES = {"failed", "canceled", "cancelled"}
MODEL_VERSIONS: Mapping[str, str] = {
    "black-forest-labs/flux-schnell": "85a7b3e7aed47e0aab28b7e1d3cda7b5b7a2b6a4d3f6e7b2e6d9f8c5e4a3b2c1",
    "stability-ai/sdxl": "39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b",
    "stability-ai/stable-diffusion-3": "527d2a6296facb8e47ba1eaf17f142c240c19a30894f437feee9b91cc29d8e4f",
}
DEFAULT_VERSION_MODEL = "black-forest-labs/flux-schnell"


def model_version(model: str) -> str:
    return MODEL_VERSIONS.get(model) or MODEL_VERSIONS[DEFAULT_VERSION_MODEL]


class ReplicateAdapter:
    family = FAMILY_JOB

    def build(self, resolved: ResolvedRequest, credential: Credential) -> WireRequest:
        payload_input: Dict[str, Any] = {
            "prompt": resolved.prompt,
            "width": resolved.width,
            "height": resolved.height,
            "num_outputs": 1,
            "guidance_scale": 7.5,
            "num_inference_steps": 25 if resolved.is_edit else 4,
        }
        if resolved.is_edit:
            payload_input["image"] = image_reference(resolved.image)
            payload_input["strength"] = resolved.strength
        return WireRequest(
            method="POST",
            url=resolved.endpoint,
            headers={
                "Authorization": f"Token {credential.secret}",
                "Content-Type": "application/json",
            },
            body={"version": model_version(resolved.model), "input": payload_input},
            credential=credential,
        )

    def send(self, wire: WireRequest, context: CallContext) -> RawResponse:
        return send_http(wire, context, LABEL)

    def job_handle(self, raw: RawResponse) -> Optional[str]:
        payload = raw.payload if isinstance(raw.payload, Mapping) else {}
        handle = payload.get("id")
        return str(handle) if handle else None

    def job_status(self, raw: RawResponse) -> str:
        payload = raw.payload if isinstance(raw.payload, Mapping) else {}
        return str(payload.get("status") or "")

    def fetch_status(self, handle: str, wire: WireRequest, context: CallContext) -> RawResponse:
        url = f"{wire.url.rstrip('/')}/{handle}"
        headers = {"Authorization": wire.headers.get("Authorization", "")}
        return send_http(wire, context, LABEL, url=url, method="GET", headers=headers)

    def normalize(self, raw: RawResponse, resolved: ResolvedRequest) -> GatewayResult:
        status_failure = failure_for_status(raw, resolved, LABEL)
        if status_failure is not None:
            return status_failure
        if not isinstance(raw.payload, Mapping):
            return malformed(resolved, "Replicate returned a non-JSON prediction.")
        status = self.job_status(raw).lower()
        if status in FAILURE_STATUSES:
            error = raw.payload.get("error") or status
            logger.warning("Replicate prediction %s: %s", status, error)
            return failure("transient_error", f"Generation failed: {error}", resolved, details=str(error))
        if status not in SUCCESS_STATUSES:
            return malformed(resolved, f"Replicate prediction ended in unexpected status '{status}'.")
        output = raw.payload.get("output")
        candidates = output if isinstance(output, list) else [output]
        result = first_reference(candidates, resolved)
        if result is None:
            return malformed(resolved, "No image received from Replicate.")
        return result
