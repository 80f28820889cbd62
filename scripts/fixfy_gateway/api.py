"""Public API for the Fixfy provider gateway.

The ``handle_*`` functions are the boundary used by the edge layer: they take
the inbound JSON-like payload and return ``(http_status, body)``. The
``generate``/``analyze``/``estimate`` helpers take keyword arguments and
return the raw ``GatewayResult``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple

from fixfy_gateway.core.contracts import (
    AnalysisRequest,
    DetectedObject,
    DetectionsResult,
    EstimateRequest,
    EstimateResult,
    Failure,
    GatewayResult,
    GenerationRequest,
    ImageInput,
    ImageResult,
)
from fixfy_gateway.core.dispatcher import Dispatcher, default_dispatcher
from fixfy_gateway.core.prompts import compose_renovation_prompt
from fixfy_gateway.core.registry import default_registry

logger = logging.getLogger(__name__)

Response = Tuple[int, Dict[str, Any]]

_STATUS_FOR_KIND = {
    "client_error": 400,
    "rate_limited": 429,
    "out_of_service": 503,
    "malformed_response": 500,
    "transient_error": 500,
}

SWITCH_SUGGESTION = "Try switching to a different AI provider or wait a few moments before trying again."
CONFIG_SUGGESTION = "Configure the API key or select a different AI provider."
ERROR_SUGGESTION = "Try again, or switch to a different AI provider."


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def generation_request_from_payload(payload: Mapping[str, Any]) -> GenerationRequest:
    prompt = payload.get("prompt")
    prompt = prompt if isinstance(prompt, str) else ""
    suggestions = payload.get("selectedSuggestions")
    if isinstance(suggestions, list) and suggestions:
        composed = compose_renovation_prompt(
            suggestions,
            room_type=payload.get("roomType"),
            budget=payload.get("budget"),
            wall_colors=payload.get("wallColors"),
            flooring=payload.get("flooring"),
            tile=payload.get("tile"),
        )
        prompt = f"{prompt.strip()}\n\n{composed}".strip()
    return GenerationRequest(
        prompt=prompt,
        provider_id=_blank_to_none(payload.get("selectedProvider")),
        model_id=_blank_to_none(payload.get("selectedModel")),
        source_image=_blank_to_none(payload.get("originalImage")),
        strength=payload.get("strength", 0.5),
        width=payload.get("width", 1024),
        height=payload.get("height", 1024),
    )


def analysis_request_from_payload(payload: Mapping[str, Any]) -> AnalysisRequest:
    image = _blank_to_none(payload.get("imageBase64"))
    if image is None:
        image = _blank_to_none(payload.get("imageData"))
    return AnalysisRequest(
        image=image,
        provider_id=_blank_to_none(payload.get("selectedProvider")),
        model_id=_blank_to_none(payload.get("selectedModel")),
    )


def estimate_request_from_payload(payload: Mapping[str, Any]) -> EstimateRequest:
    prompt = payload.get("prompt")
    return EstimateRequest(
        prompt=prompt if isinstance(prompt, str) else "",
        provider_id=_blank_to_none(payload.get("selectedProvider")),
        model_id=_blank_to_none(payload.get("selectedModel")),
    )


def provider_label(provider_id: Optional[str]) -> Optional[str]:
    if provider_id is None:
        return None
    descriptor = default_registry().lookup(provider_id)
    return descriptor.display_name if descriptor is not None else provider_id


def detected_object_body(item: DetectedObject) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "name": item.name,
        "confidence": item.confidence,
        "location": item.location,
    }
    optional = {
        "projectTitle": item.project_title,
        "roomArea": item.room_area,
        "projectType": item.project_type,
        "issueSolved": item.issue_solved,
        "estimatedCost": item.estimated_cost,
        "timelineDays": item.timeline_days,
        "condition": item.condition,
    }
    body.update({key: value for key, value in optional.items() if value is not None})
    if item.shopping_links:
        body["shoppingLinks"] = [
            {key: value for key, value in (("store", link.store), ("url", link.url), ("price", link.price)) if value}
            for link in item.shopping_links
        ]
    return body


def _failure_body(result: Failure) -> Response:
    status = _STATUS_FOR_KIND.get(result.kind, 500)
    body: Dict[str, Any] = {"error": result.message}
    provider = provider_label(result.provider_id)
    if result.kind == "client_error":
        body["status"] = "error"
        if provider:
            body["provider"] = provider
        if "availableProviders" in result.metadata:
            body["availableProviders"] = list(result.metadata["availableProviders"])
        return status, body
    body["provider"] = provider
    if result.kind == "rate_limited":
        body.update(status="rate_limited", details=result.details or "Rate limit exceeded", suggestion=SWITCH_SUGGESTION)
    elif result.kind == "out_of_service":
        body.update(status="out_of_service", suggestion=CONFIG_SUGGESTION)
        for key in ("keyName", "availableProviders"):
            if key in result.metadata:
                body[key] = result.metadata[key]
    else:
        body.update(status="error", model=result.model_id, suggestion=ERROR_SUGGESTION)
        if result.details:
            body["details"] = result.details
    return status, body


def to_response(result: GatewayResult, prompt: Optional[str] = None) -> Response:
    """Shape a ``GatewayResult`` into the outbound ``(http_status, body)`` pair."""
    if isinstance(result, Failure):
        return _failure_body(result)
    body: Dict[str, Any] = {}
    if isinstance(result, ImageResult):
        body["imageUrl"] = result.reference
        if prompt is not None:
            body["prompt"] = prompt
    elif isinstance(result, DetectionsResult):
        body["detectedObjects"] = [detected_object_body(item) for item in result.objects]
        body["fallback"] = result.fallback
    elif isinstance(result, EstimateResult):
        estimate = result.estimate
        body.update(
            estimatedCost=estimate.estimated_cost,
            estimatedTime=estimate.estimated_time_days,
            materials=[
                {"name": m.name, "quantity": m.quantity, "estimatedPrice": m.estimated_price}
                for m in estimate.materials
            ],
            breakdown=estimate.breakdown,
        )
    else:
        raise TypeError(f"Unsupported result type: {type(result)}")
    body.update(
        provider=provider_label(result.provider_id),
        model=result.model_id,
        status="success",
        warnings=list(result.warnings),
    )
    return 200, body


def _internal_error(exc: Exception) -> Response:
    logger.exception("Unhandled gateway error")
    return 500, {"error": str(exc) or "Unknown error occurred", "status": "error"}


def handle_generate(
    payload: Mapping[str, Any],
    dispatcher: Optional[Dispatcher] = None,
    cancel: Optional[threading.Event] = None,
) -> Response:
    try:
        request = generation_request_from_payload(payload)
        result = (dispatcher or default_dispatcher()).dispatch(request, cancel=cancel)
        return to_response(result, prompt=request.prompt)
    except Exception as exc:
        return _internal_error(exc)


def handle_analyze(
    payload: Mapping[str, Any],
    dispatcher: Optional[Dispatcher] = None,
    cancel: Optional[threading.Event] = None,
) -> Response:
    try:
        request = analysis_request_from_payload(payload)
        return to_response((dispatcher or default_dispatcher()).dispatch(request, cancel=cancel))
    except Exception as exc:
        return _internal_error(exc)


def handle_estimate(
    payload: Mapping[str, Any],
    dispatcher: Optional[Dispatcher] = None,
    cancel: Optional[threading.Event] = None,
) -> Response:
    try:
        request = estimate_request_from_payload(payload)
        return to_response((dispatcher or default_dispatcher()).dispatch(request, cancel=cancel))
    except Exception as exc:
        return _internal_error(exc)


def generate(
    *,
    prompt: str,
    source_image: Optional[ImageInput] = None,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    strength: float = 0.5,
    width: int = 1024,
    height: int = 1024,
    dispatcher: Optional[Dispatcher] = None,
    cancel: Optional[threading.Event] = None,
) -> GatewayResult:
    request = GenerationRequest(
        prompt=prompt,
        provider_id=provider,
        model_id=model,
        source_image=source_image,
        strength=strength,
        width=width,
        height=height,
    )
    return (dispatcher or default_dispatcher()).dispatch(request, cancel=cancel)


def analyze(
    *,
    image: ImageInput,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    dispatcher: Optional[Dispatcher] = None,
    cancel: Optional[threading.Event] = None,
) -> GatewayResult:
    request = AnalysisRequest(image=image, provider_id=provider, model_id=model)
    return (dispatcher or default_dispatcher()).dispatch(request, cancel=cancel)


def estimate(
    *,
    prompt: str,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    dispatcher: Optional[Dispatcher] = None,
    cancel: Optional[threading.Event] = None,
) -> GatewayResult:
    request = EstimateRequest(prompt=prompt, provider_id=provider, model_id=model)
    return (dispatcher or default_dispatcher()).dispatch(request, cancel=cancel)


def list_providers(mode: Optional[str] = None) -> List[Dict[str, Any]]:
    """Describe registered providers, optionally only those serving ``mode``."""
    rows: List[Dict[str, Any]] = []
    for descriptor in default_registry():
        if mode and not descriptor.supports(mode):  # type: ignore[arg-type]
            continue
        rows.append(
            {
                "id": descriptor.provider_id,
                "name": descriptor.display_name,
                "keyName": descriptor.credential_key,
                "modes": {m: list(b.models) for m, b in descriptor.bindings.items()},
                "editTier": descriptor.edit_tier,
                "freeLimit": descriptor.free_limit,
                "rateLimitPerMinute": descriptor.rate_limit_per_minute,
            }
        )
    return rows
