"""Provider adapter registry, keyed by adapter family."""

from __future__ import annotations

from typing import Dict

from .base import CallContext, PollingAdapter, ProviderAdapter, RawResponse, WireRequest


_ADAPTERS: Dict[str, ProviderAdapter] = {}


def _build_adapter(family: str) -> ProviderAdapter:
    key = family.strip().lower()
    if key == "chat":
        from .chat import ChatCompletionAdapter
        return ChatCompletionAdapter()
    if key == "images":
        from .openai_images import OpenAIImagesAdapter
        return OpenAIImagesAdapter()
    if key == "job":
        from .replicate import ReplicateAdapter
        return ReplicateAdapter()
    if key == "blob":
        from .huggingface import HuggingFaceAdapter
        return HuggingFaceAdapter()
    if key == "stability":
        from .stability import StabilityAdapter
        return StabilityAdapter()
    if key == "gemini":
        from .gemini import GeminiAdapter
        return GeminiAdapter()
    raise ValueError(f"No adapter registered for family '{family}'.")


def get_adapter(family: str) -> ProviderAdapter:
    key = family.strip().lower()
    adapter = _ADAPTERS.get(key)
    if adapter is not None:
        return adapter
    adapter = _build_adapter(key)
    _ADAPTERS[key] = adapter
    return adapter


__all__ = [
    "CallContext",
    "PollingAdapter",
    "ProviderAdapter",
    "RawResponse",
    "WireRequest",
    "get_adapter",
]
