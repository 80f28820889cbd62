"""Resolve a canonical request against one provider binding."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Tuple

from .contracts import (
    AnalysisRequest,
    EstimateRequest,
    GatewayRequest,
    GenerationRequest,
    Mode,
    ResolvedRequest,
)
from .errors import InvalidRequestError
from .registry import FAMILY_IMAGES, FAMILY_STABILITY, ModeBinding, ProviderDescriptor


_GPT_IMAGE_SIZES = {
    "1024x1024": (1024, 1024),
    "1536x1024": (1536, 1024),
    "1024x1536": (1024, 1536),
}

_DALLE3_SIZES = {
    "1024x1024": (1024, 1024),
    "1792x1024": (1792, 1024),
    "1024x1792": (1024, 1792),
}

_SDXL_SIZES = {
    "1024x1024": (1024, 1024),
    "1152x896": (1152, 896),
    "896x1152": (896, 1152),
    "1216x832": (1216, 832),
    "832x1216": (832, 1216),
    "1344x768": (1344, 768),
    "768x1344": (768, 1344),
    "1536x640": (1536, 640),
    "640x1536": (640, 1536),
}

_MAX_DIMENSION = 4096


def _coerce_dimension(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise InvalidRequestError(f"{label} must be a positive integer.")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise InvalidRequestError(f"{label} must be a positive integer.")
    if value > _MAX_DIMENSION:
        raise InvalidRequestError(f"{label} must not exceed {_MAX_DIMENSION} pixels.")
    return value


def resolve_strength(value: Any, policy: str, warnings: List[str]) -> float:
    if value is None:
        return 0.5
    if isinstance(value, bool):
        raise InvalidRequestError("strength must be a number between 0 and 1.")
    try:
        strength = float(value)
    except (TypeError, ValueError):
        raise InvalidRequestError("strength must be a number between 0 and 1.") from None
    if math.isnan(strength) or math.isinf(strength):
        raise InvalidRequestError("strength must be a finite number between 0 and 1.")
    if 0.0 <= strength <= 1.0:
        return strength
    if policy == "reject":
        raise InvalidRequestError(f"strength {strength} is outside [0, 1].")
    clamped = min(1.0, max(0.0, strength))
    warnings.append(f"strength {strength} clamped to {clamped}.")
    return clamped


def _snap_to_table(
    width: int,
    height: int,
    table: Dict[str, Tuple[int, int]],
    label: str,
    warnings: List[str],
) -> Tuple[int, int]:
    key = f"{width}x{height}"
    if key in table:
        return table[key]
    target_ratio = width / height
    best_key = next(iter(table))
    best_delta = float("inf")
    for candidate, (w, h) in table.items():
        delta = abs((w / h) - target_ratio)
        if delta < best_delta:
            best_delta = delta
            best_key = candidate
    warnings.append(f"{label} size snapped to {best_key}.")
    return table[best_key]


def _snap_multiple(value: int, multiple: int, low: int, high: int) -> int:
    snapped = int(round(value / multiple) * multiple)
    return min(high, max(low, snapped))


def _resolve_stability_dims(model: str, width: int, height: int, warnings: List[str]) -> Tuple[int, int]:
    if "xl" in model:
        return _snap_to_table(width, height, _SDXL_SIZES, "Stability SDXL", warnings)
    snapped = (_snap_multiple(width, 64, 320, 1536), _snap_multiple(height, 64, 320, 1536))
    if snapped != (width, height):
        warnings.append(f"Stability size snapped to {snapped[0]}x{snapped[1]} (multiples of 64).")
    return snapped


def _resolve_images_dims(model: str, width: int, height: int, warnings: List[str]) -> Tuple[int, int]:
    if model.startswith("dall-e-3"):
        return _snap_to_table(width, height, _DALLE3_SIZES, "OpenAI", warnings)
    return _snap_to_table(width, height, _GPT_IMAGE_SIZES, "OpenAI", warnings)


def resolve_model(requested: Optional[str], binding: ModeBinding, descriptor: ProviderDescriptor) -> str:
    if requested is None or not str(requested).strip():
        return binding.default_model
    model = str(requested).strip()
    if model not in binding.models:
        raise InvalidRequestError(
            f"Unknown model '{model}' for {descriptor.display_name}. "
            f"Available models: {', '.join(binding.models)}"
        )
    return model


def _generation_warnings(request: GenerationRequest, descriptor: ProviderDescriptor, binding: ModeBinding, model: str) -> List[str]:
    if request.source_image is None:
        return []
    if descriptor.edit_tier == "none":
        return [f"{descriptor.display_name} has no image-editing support; the source image is not sent."]
    if binding.family == FAMILY_IMAGES:
        return [f"{descriptor.display_name} edits are folded into the prompt; the source image is not sent."]
    if descriptor.edit_tier == "limited" and "stable-diffusion" not in model:
        return [f"{model} has limited image-editing support; the source image is not sent."]
    return []


def resolve_request(
    request: GatewayRequest,
    descriptor: ProviderDescriptor,
    mode: Mode,
    *,
    strength_policy: str = "clamp",
) -> ResolvedRequest:
    binding = descriptor.binding(mode)
    if binding is None:
        raise ValueError(f"{descriptor.provider_id} has no binding for {mode}")
    model = resolve_model(request.model_id, binding, descriptor)

    if isinstance(request, GenerationRequest):
        warnings = _generation_warnings(request, descriptor, binding, model)
        width = _coerce_dimension(request.width, "width")
        height = _coerce_dimension(request.height, "height")
        strength = resolve_strength(request.strength, strength_policy, warnings)
        if binding.family == FAMILY_IMAGES:
            width, height = _resolve_images_dims(model, width, height, warnings)
        elif binding.family == FAMILY_STABILITY:
            width, height = _resolve_stability_dims(model, width, height, warnings)
        return ResolvedRequest(
            mode=mode,
            provider_id=descriptor.provider_id,
            model=model,
            family=binding.family,
            endpoint=binding.endpoint,
            label=descriptor.display_name,
            prompt=request.prompt.strip(),
            image=request.source_image,
            strength=strength,
            width=width,
            height=height,
            warnings=warnings,
        )

    if isinstance(request, AnalysisRequest):
        return ResolvedRequest(
            mode=mode,
            provider_id=descriptor.provider_id,
            model=model,
            family=binding.family,
            endpoint=binding.endpoint,
            label=descriptor.display_name,
            image=request.image,
        )

    if isinstance(request, EstimateRequest):
        return ResolvedRequest(
            mode=mode,
            provider_id=descriptor.provider_id,
            model=model,
            family=binding.family,
            endpoint=binding.endpoint,
            label=descriptor.display_name,
            prompt=request.prompt.strip(),
        )

    raise TypeError(f"Unsupported request type: {type(request)}")
