"""Provider routing and alias normalization."""

from __future__ import annotations

import re
from typing import Dict, Optional

from .contracts import Mode


PROVIDER_ALIASES: Dict[str, str] = {
    "openai": "OPENAI",
    "gpt-image": "OPENAI",
    "gpt-image-1": "OPENAI",
    "dall-e": "OPENAI",
    "huggingface": "HUGGINGFACE",
    "hugging-face": "HUGGINGFACE",
    "hf": "HUGGINGFACE",
    "replicate": "REPLICATE",
    "stability": "STABILITY",
    "stability-ai": "STABILITY",
    "stabilityai": "STABILITY",
    "lovable": "LOVABLE",
    "lovable-ai": "LOVABLE",
    "fixfy": "LOVABLE",
    "fixfy-ai": "LOVABLE",
    "google": "GOOGLE",
    "gemini": "GOOGLE",
    "google-gemini": "GOOGLE",
    "groq": "GROQ",
}

DEFAULT_PROVIDERS: Dict[str, str] = {
    "generate": "OPENAI",
    "analyze": "LOVABLE",
    "estimate": "LOVABLE",
}


def normalize_provider(provider: Optional[str]) -> Optional[str]:
    if provider is None or not str(provider).strip():
        return None
    raw = str(provider).strip()
    slug = re.sub(r"[^a-z0-9]+", "-", raw.lower()).strip("-")
    return PROVIDER_ALIASES.get(slug, raw.upper())


def resolve_provider(
    provider: Optional[str],
    mode: Mode,
    defaults: Optional[Dict[str, str]] = None,
) -> str:
    normalized = normalize_provider(provider)
    if normalized and normalized not in {"AUTO", "DEFAULT"}:
        return normalized
    table = defaults or DEFAULT_PROVIDERS
    choice = table.get(mode) or DEFAULT_PROVIDERS[mode]
    return normalize_provider(choice) or DEFAULT_PROVIDERS[mode]
