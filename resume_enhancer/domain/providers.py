"""Provider identifiers and their static metadata."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"

    @property
    def info(self) -> "ProviderInfo":
        return PROVIDER_INFO[self]


@dataclass(frozen=True, slots=True)
class ProviderInfo:
    """Static catalogue entry shown next to a provider in the UI."""

    display_name: str
    default_model: str
    model_families: tuple[str, ...]
    recommended: tuple[str, ...]
    deprecated: tuple[str, ...]
    keys_url: str
    billing_url: str
    pricing_url: str
    descriptions: Mapping[str, str] = field(default_factory=dict)

    def is_recommended(self, model_id: str) -> bool:
        return any(candidate in model_id for candidate in self.recommended)

    def is_deprecated(self, model_id: str) -> bool:
        return any(candidate in model_id for candidate in self.deprecated)

    def describe(self, model_id: str) -> str:
        return self.descriptions.get(model_id, "AI language model")


PROVIDER_INFO: dict[Provider, ProviderInfo] = {
    Provider.OPENAI: ProviderInfo(
        display_name="OpenAI",
        default_model="gpt-4o",
        model_families=("gpt", "o3", "o4", "davinci"),
        recommended=("gpt-4.1", "gpt-4o", "o3-pro"),
        deprecated=("gpt-4-turbo", "gpt-3.5-turbo", "davinci", "curie", "babbage", "ada"),
        keys_url="https://platform.openai.com/api-keys",
        billing_url="https://platform.openai.com/account/billing",
        pricing_url="https://openai.com/pricing",
        descriptions={
            "gpt-4.1": "Most capable model with major gains in coding and instruction following",
            "gpt-4o": "Multimodal model integrating text and images",
            "o3-pro": "Advanced reasoning model for complex problems",
            "o4-mini": "Efficient reasoning model",
        },
    ),
    Provider.ANTHROPIC: ProviderInfo(
        display_name="Anthropic",
        default_model="claude-sonnet-4-20250514",
        model_families=("claude",),
        recommended=("claude-opus-4-1-20250805", "claude-opus-4-20250514", "claude-sonnet-4-20250514"),
        deprecated=("claude-2", "claude-instant"),
        keys_url="https://console.anthropic.com/settings/keys",
        billing_url="https://console.anthropic.com/settings/billing",
        pricing_url="https://console.anthropic.com/settings/plans",
        descriptions={
            "claude-opus-4-1-20250805": "Most capable and intelligent model",
            "claude-sonnet-4-20250514": "High-performance with exceptional reasoning",
            "claude-3-7-sonnet-20250219": "Extended thinking capabilities",
        },
    ),
    Provider.GEMINI: ProviderInfo(
        display_name="Google Gemini",
        default_model="gemini-2.5-flash",
        model_families=("gemini",),
        recommended=("gemini-2.5-pro", "gemini-2.5-flash"),
        deprecated=("gemini-1.5-pro", "gemini-1.5-flash", "gemini-pro", "gemini-pro-vision"),
        keys_url="https://makersuite.google.com/app/apikey",
        billing_url="https://console.cloud.google.com/billing",
        pricing_url="https://ai.google.dev/pricing",
        descriptions={
            "gemini-2.5-pro": "Most advanced AI model",
            "gemini-2.5-flash": "Best price-performance ratio",
            "gemini-2.0-flash": "Next-gen features with 1M token context",
        },
    ),
}


@dataclass(frozen=True, slots=True)
class ModelInfo:
    """One entry of a provider's model picker."""

    id: str
    name: str
    description: str
    context_length: int | None = None
    is_recommended: bool = False
    is_deprecated: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "contextLength": self.context_length,
            "isRecommended": self.is_recommended,
            "isDeprecated": self.is_deprecated,
        }


_DATE_SUFFIX = re.compile(r"\d{8,}")


def format_model_name(model_id: str) -> str:
    """Turn ``claude-3-5-sonnet-20241022`` into ``Claude 3 5 Sonnet (2024-10-22)``."""

    spaced = re.sub(r"[-_]", " ", model_id)
    titled = re.sub(r"\b\w", lambda match: match.group(0).upper(), spaced)
    dated = _DATE_SUFFIX.sub(lambda match: f"({match.group(0)[:4]}-{match.group(0)[4:6]}-{match.group(0)[6:]})", titled)
    return dated.strip()


def describe_model(provider: Provider, model_id: str, *, name: str | None = None, context_length: int | None = None, description: str | None = None) -> ModelInfo:
    info = provider.info
    return ModelInfo(
        id=model_id,
        name=name or format_model_name(model_id),
        description=description or info.describe(model_id),
        context_length=context_length,
        is_recommended=info.is_recommended(model_id),
        is_deprecated=info.is_deprecated(model_id),
    )


def parse_provider(value: str | Provider | None) -> Provider | None:
    if value is None or isinstance(value, Provider):
        return value
    try:
        return Provider(str(value).strip().lower())
    except ValueError:
        return None
