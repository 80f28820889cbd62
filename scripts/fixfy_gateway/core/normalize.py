"""Shared response normalization: status classification and image extraction."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Iterable, Optional

from .contracts import DetectionsResult, EstimateResult, Failure, GatewayResult, ImageResult, ResolvedRequest
from .diagnostics import summarize_error
from .parsing import FALLBACK_DETECTIONS, Parsed, Unparseable, detections_from_payload, estimate_from_payload, extract_json_object
from .utils import is_data_uri, is_url

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = 429


def failure(
    kind: str,
    message: str,
    resolved: ResolvedRequest,
    *,
    http_status: Optional[int] = None,
    details: Optional[str] = None,
) -> Failure:
    return Failure(
        kind=kind,  # type: ignore[arg-type]
        message=message,
        provider_id=resolved.provider_id,
        model_id=resolved.model,
        http_status=http_status,
        details=details,
    )


def failure_for_status(raw: Any, resolved: ResolvedRequest, label: str) -> Optional[Failure]:
    """Classify a non-2xx response; ``None`` when the status is a success.

    ``raw`` is any object with ``status``, ``payload`` and ``text`` attributes.
    """
    status = int(raw.status)
    if 200 <= status < 300:
        return None
    detail = summarize_error(raw.payload, raw.text)
    if status == RATE_LIMIT_STATUS:
        return failure(
            "rate_limited",
            f"{label} rate limit exceeded. Please wait and try again, or switch to a different provider.",
            resolved,
            http_status=status,
            details=detail or "Rate limit exceeded",
        )
    message = f"{label} API error: {status}"
    if detail:
        message = f"{message} - {detail}"
    return failure("transient_error", message, resolved, http_status=status, details=detail or None)


def malformed(resolved: ResolvedRequest, message: str, *, details: Optional[str] = None) -> Failure:
    return failure("malformed_response", message, resolved, details=details)


def image_from_b64(b64: Any, resolved: ResolvedRequest, mime_type: str = "image/png") -> Optional[ImageResult]:
    if not isinstance(b64, str) or not b64.strip():
        return None
    text = b64.strip()
    if is_data_uri(text):
        return image_result(text, resolved)
    try:
        base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return None
    return image_result(f"data:{mime_type};base64,{text}", resolved)


def image_from_reference(reference: Any, resolved: ResolvedRequest) -> Optional[ImageResult]:
    if not isinstance(reference, str):
        return None
    text = reference.strip()
    if is_url(text) or is_data_uri(text):
        return image_result(text, resolved)
    return None


def first_reference(candidates: Iterable[Any], resolved: ResolvedRequest) -> Optional[ImageResult]:
    for candidate in candidates:
        result = image_from_reference(candidate, resolved)
        if result is not None:
            return result
    return None


def image_result(reference: str, resolved: ResolvedRequest) -> ImageResult:
    return ImageResult(
        reference=reference,
        provider_id=resolved.provider_id,
        model_id=resolved.model,
        warnings=tuple(resolved.warnings),
    )


def detections_from_reply(text: Optional[str], resolved: ResolvedRequest) -> GatewayResult:
    """Turn a model's analysis reply into detections.

    An empty reply is a malformed response. A reply with no recoverable JSON
    object degrades to ``FALLBACK_DETECTIONS`` when the request allows it.
    """
    if not text or not text.strip():
        return malformed(resolved, f"No content received from {resolved.label or resolved.provider_id}.")
    outcome = extract_json_object(text)
    objects = detections_from_payload(outcome.value) if isinstance(outcome, Parsed) else None
    if objects is not None:
        return DetectionsResult(
            objects=tuple(objects),
            provider_id=resolved.provider_id,
            model_id=resolved.model,
            warnings=tuple(resolved.warnings),
        )
    reason = outcome.reason if isinstance(outcome, Unparseable) else "reply has no detectedObjects list"
    if not resolved.analysis_fallback:
        details = outcome.excerpt if isinstance(outcome, Unparseable) else None
        return malformed(resolved, f"No valid JSON found in response: {reason}", details=details)
    logger.warning("Analysis reply from %s unusable (%s); using fallback detections", resolved.provider_id, reason)
    return DetectionsResult(
        objects=FALLBACK_DETECTIONS,
        provider_id=resolved.provider_id,
        model_id=resolved.model,
        fallback=True,
        warnings=tuple(resolved.warnings) + (f"Fallback detections used: {reason}.",),
    )


def estimate_from_reply(text: Optional[str], resolved: ResolvedRequest) -> GatewayResult:
    if not text or not text.strip():
        return malformed(resolved, f"No content received from {resolved.label or resolved.provider_id}.")
    outcome = extract_json_object(text)
    if isinstance(outcome, Unparseable):
        return malformed(resolved, f"No valid JSON found in response: {outcome.reason}", details=outcome.excerpt)
    estimate = estimate_from_payload(outcome.value)
    if estimate is None:
        return malformed(resolved, "Invalid response structure: estimatedCost and estimatedTime are required.")
    return EstimateResult(
        estimate=estimate,
        provider_id=resolved.provider_id,
        model_id=resolved.model,
        warnings=tuple(resolved.warnings),
    )
