"""Fixfy provider gateway public surface."""

from .api import analyze, estimate, generate, handle_analyze, handle_estimate, handle_generate, list_providers
from .core import (
    AnalysisRequest,
    DetectionsResult,
    Dispatcher,
    EstimateRequest,
    EstimateResult,
    Failure,
    GenerationRequest,
    ImageResult,
)

__all__ = [
    "analyze",
    "estimate",
    "generate",
    "handle_analyze",
    "handle_estimate",
    "handle_generate",
    "list_providers",
    "AnalysisRequest",
    "DetectionsResult",
    "Dispatcher",
    "EstimateRequest",
    "EstimateResult",
    "Failure",
    "GenerationRequest",
    "ImageResult",
]
