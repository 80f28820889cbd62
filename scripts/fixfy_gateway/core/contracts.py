"""Core data contracts for the Fixfy provider gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Mapping, Optional, Sequence, Union


Mode = Literal["generate", "analyze", "estimate"]
ImageInput = Union[str, Path, bytes]
FailureKind = Literal[
    "client_error",
    "out_of_service",
    "rate_limited",
    "malformed_response",
    "transient_error",
]

FAILURE_KINDS = (
    "client_error",
    "out_of_service",
    "rate_limited",
    "malformed_response",
    "transient_error",
)


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    provider_id: Optional[str] = None
    model_id: Optional[str] = None
    source_image: Optional[ImageInput] = None
    strength: Any = 0.5
    width: Any = 1024
    height: Any = 1024

    @property
    def mode(self) -> str:
        return "edit" if self.source_image is not None else "create"


@dataclass(frozen=True)
class AnalysisRequest:
    image: Optional[ImageInput]
    provider_id: Optional[str] = None
    model_id: Optional[str] = None


@dataclass(frozen=True)
class EstimateRequest:
    prompt: str
    provider_id: Optional[str] = None
    model_id: Optional[str] = None


@dataclass(frozen=True)
class ShoppingLink:
    store: str
    url: Optional[str] = None
    price: Optional[str] = None


@dataclass(frozen=True)
class DetectedObject:
    name: str
    confidence: float
    location: str = ""
    project_title: Optional[str] = None
    room_area: Optional[str] = None
    project_type: Optional[str] = None
    issue_solved: Optional[str] = None
    estimated_cost: Optional[float] = None
    timeline_days: Optional[float] = None
    condition: Optional[str] = None
    shopping_links: Sequence[ShoppingLink] = ()


@dataclass(frozen=True)
class Material:
    name: str
    quantity: Optional[str] = None
    estimated_price: Optional[float] = None


@dataclass(frozen=True)
class CostEstimate:
    estimated_cost: float
    estimated_time_days: float
    materials: Sequence[Material] = ()
    breakdown: Optional[str] = None


@dataclass(frozen=True)
class ImageResult:
    reference: str
    provider_id: str
    model_id: str
    warnings: Sequence[str] = ()


@dataclass(frozen=True)
class DetectionsResult:
    objects: Sequence[DetectedObject]
    provider_id: str
    model_id: str
    fallback: bool = False
    warnings: Sequence[str] = ()


@dataclass(frozen=True)
class EstimateResult:
    estimate: CostEstimate
    provider_id: str
    model_id: str
    warnings: Sequence[str] = ()


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    provider_id: Optional[str] = None
    model_id: Optional[str] = None
    http_status: Optional[int] = None
    details: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


GatewayResult = Union[ImageResult, DetectionsResult, EstimateResult, Failure]
GatewayRequest = Union[GenerationRequest, AnalysisRequest, EstimateRequest]


def request_mode(request: GatewayRequest) -> Mode:
    if isinstance(request, GenerationRequest):
        return "generate"
    if isinstance(request, AnalysisRequest):
        return "analyze"
    if isinstance(request, EstimateRequest):
        return "estimate"
    raise TypeError(f"Unsupported request type: {type(request)}")


@dataclass
class ResolvedRequest:
    """A validated request bound to one provider, model and adapter family."""

    mode: Mode
    provider_id: str
    model: str
    family: str
    endpoint: str
    prompt: str = ""
    image: Optional[ImageInput] = None
    strength: float = 0.5
    width: Optional[int] = None
    height: Optional[int] = None
    label: str = ""
    analysis_fallback: bool = True
    provider_params: Mapping[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_edit(self) -> bool:
        return self.mode == "generate" and self.image is not None
