"""Core contracts, routing and dispatch."""

from .contracts import (
    AnalysisRequest,
    DetectionsResult,
    EstimateRequest,
    EstimateResult,
    Failure,
    GenerationRequest,
    ImageResult,
    ResolvedRequest,
)
from .dispatcher import Dispatcher

__all__ = [
    "AnalysisRequest",
    "DetectionsResult",
    "Dispatcher",
    "EstimateRequest",
    "EstimateResult",
    "Failure",
    "GenerationRequest",
    "ImageResult",
    "ResolvedRequest",
]
