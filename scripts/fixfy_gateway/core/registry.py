"""Provider registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Literal, Mapping, Optional, Tuple

from .contracts import Mode


EditTier = Literal["none", "limited", "full"]

FAMILY_CHAT = "chat"
FAMILY_IMAGES = "images"
FAMILY_JOB = "job"
FAMILY_BLOB = "blob"
FAMILY_STABILITY = "stability"
FAMILY_GEMINI = "gemini"


@dataclass(frozen=True)
class ModeBinding:
    family: str
    endpoint: str
    models: Tuple[str, ...]

    @property
    def default_model(self) -> str:
        return self.models[0]


@dataclass(frozen=True)
class ProviderDescriptor:
    provider_id: str
    display_name: str
    credential_key: str
    bindings: Mapping[str, ModeBinding]
    free_limit: Optional[int] = None
    free_limit_period: str = "month"
    rate_limit_per_minute: Optional[int] = None
    edit_tier: EditTier = "none"
    notes: Mapping[str, str] = field(default_factory=dict)

    def binding(self, mode: Mode) -> Optional[ModeBinding]:
        return self.bindings.get(mode)

    def supports(self, mode: Mode) -> bool:
        return mode in self.bindings

    def models(self, mode: Mode) -> Tuple[str, ...]:
        binding = self.bindings.get(mode)
        return binding.models if binding else ()


class ProviderRegistry:
    """Immutable lookup table of provider descriptors keyed by provider id."""

    def __init__(self, descriptors: Iterable[ProviderDescriptor]) -> None:
        table: Dict[str, ProviderDescriptor] = {}
        for descriptor in descriptors:
            key = descriptor.provider_id.upper()
            if key in table:
                raise ValueError(f"Duplicate provider id '{descriptor.provider_id}'")
            for mode, binding in descriptor.bindings.items():
                if not binding.models:
                    raise ValueError(f"{descriptor.provider_id} declares no models for {mode}")
            table[key] = descriptor
        self._table: Mapping[str, ProviderDescriptor] = dict(table)

    def lookup(self, provider_id: Optional[str]) -> Optional[ProviderDescriptor]:
        if not provider_id:
            return None
        return self._table.get(provider_id.strip().upper())

    def provider_ids(self, mode: Optional[Mode] = None) -> Tuple[str, ...]:
        if mode is None:
            return tuple(self._table)
        return tuple(key for key, desc in self._table.items() if desc.supports(mode))

    def __contains__(self, provider_id: object) -> bool:
        return isinstance(provider_id, str) and self.lookup(provider_id) is not None

    def __iter__(self):
        return iter(self._table.values())

    def __len__(self) -> int:
        return len(self._table)


_TEXT_MODES = ("analyze", "estimate")


def _chat_bindings(endpoint: str, models: Tuple[str, ...]) -> Dict[str, ModeBinding]:
    binding = ModeBinding(family=FAMILY_CHAT, endpoint=endpoint, models=models)
    return {mode: binding for mode in _TEXT_MODES}


_DESCRIPTORS: Tuple[ProviderDescriptor, ...] = (
    ProviderDescriptor(
        provider_id="OPENAI",
        display_name="OpenAI",
        credential_key="OPENAI_API_KEY",
        bindings={
            "generate": ModeBinding(
                family=FAMILY_IMAGES,
                endpoint="https://api.openai.com/v1",
                models=("gpt-image-1", "dall-e-3"),
            ),
            **_chat_bindings("https://api.openai.com/v1", ("gpt-4o-mini", "gpt-4o")),
        },
        free_limit=100,
        rate_limit_per_minute=10,
        edit_tier="full",
    ),
    ProviderDescriptor(
        provider_id="HUGGINGFACE",
        display_name="Hugging Face",
        credential_key="HUGGINGFACE_API_KEY",
        bindings={
            "generate": ModeBinding(
                family=FAMILY_BLOB,
                endpoint="https://api-inference.huggingface.co/models/",
                models=(
                    "black-forest-labs/FLUX.1-schnell",
                    "black-forest-labs/FLUX.1-dev",
                    "stabilityai/stable-diffusion-xl-base-1.0",
                ),
            ),
        },
        free_limit=100,
        rate_limit_per_minute=10,
        edit_tier="limited",
        notes={"edit": "Only stable-diffusion models receive the source image."},
    ),
    ProviderDescriptor(
        provider_id="REPLICATE",
        display_name="Replicate",
        credential_key="REPLICATE_API_TOKEN",
        bindings={
            "generate": ModeBinding(
                family=FAMILY_JOB,
                endpoint="https://api.replicate.com/v1/predictions",
                models=("black-forest-labs/flux-schnell", "stability-ai/sdxl"),
            ),
        },
        free_limit=50,
        rate_limit_per_minute=5,
        edit_tier="full",
    ),
    ProviderDescriptor(
        provider_id="STABILITY",
        display_name="Stability AI",
        credential_key="STABILITY_API_KEY",
        bindings={
            "generate": ModeBinding(
                family=FAMILY_STABILITY,
                endpoint="https://api.stability.ai/v1/generation/",
                models=("stable-diffusion-xl-1024-v1-0", "stable-diffusion-v1-6"),
            ),
        },
        free_limit=25,
        rate_limit_per_minute=5,
        edit_tier="none",
    ),
    ProviderDescriptor(
        provider_id="LOVABLE",
        display_name="Lovable AI",
        credential_key="LOVABLE_API_KEY",
        bindings={
            "generate": ModeBinding(
                family=FAMILY_CHAT,
                endpoint="https://ai.gateway.lovable.dev/v1",
                models=("google/gemini-2.5-flash-image",),
            ),
            **_chat_bindings(
                "https://ai.gateway.lovable.dev/v1",
                ("google/gemini-2.5-flash", "google/gemini-2.5-pro"),
            ),
        },
        free_limit=30,
        free_limit_period="day",
        rate_limit_per_minute=3,
        edit_tier="full",
    ),
    ProviderDescriptor(
        provider_id="GOOGLE",
        display_name="Google Gemini",
        credential_key="GOOGLE_AI_KEY",
        bindings={
            mode: ModeBinding(
                family=FAMILY_GEMINI,
                endpoint="https://generativelanguage.googleapis.com/v1/models/",
                models=("gemini-2.5-flash", "gemini-2.5-pro", "gemini-3-pro-preview"),
            )
            for mode in _TEXT_MODES
        },
        free_limit=1500,
        free_limit_period="day",
        rate_limit_per_minute=15,
        edit_tier="none",
        notes={"generate": "Gemini text models do not produce images."},
    ),
    ProviderDescriptor(
        provider_id="GROQ",
        display_name="Groq",
        credential_key="GROQ_API_KEY",
        bindings=_chat_bindings(
            "https://api.groq.com/openai/v1",
            ("llama-3.2-90b-vision-preview", "llava-v1.5-7b-4096-preview"),
        ),
        free_limit=100,
        free_limit_period="day",
        rate_limit_per_minute=30,
        edit_tier="none",
    ),
)


_DEFAULT_REGISTRY: Optional[ProviderRegistry] = None


def default_registry() -> ProviderRegistry:
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        _DEFAULT_REGISTRY = ProviderRegistry(_DESCRIPTORS)
    return _DEFAULT_REGISTRY
