"""Local token and cost estimates. All figures are advisory, not billed amounts."""
from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from resume_enhancer.core.schema import EnhancementRequest
from resume_enhancer.domain.providers import Provider
from resume_enhancer.infrastructure.providers import estimate_tokens

PRICING_PATH = Path(__file__).resolve().parent.parent / "core" / "pricing.yaml"

DEFAULT_OUTPUT_TOKENS = 1500
SYSTEM_PROMPT_TOKENS = 500
FORMATTING_OVERHEAD_TOKENS = 200
LEVEL_OUTPUT_SCALE = {"light": 0.7, "moderate": 1.0, "comprehensive": 1.5}


@dataclass(frozen=True, slots=True)
class ModelPricing:
    input_per_million: float
    output_per_million: float
    context_window: int


@dataclass(slots=True)
class CostEstimate:
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    input_cost: float
    output_cost: float
    exceeds_context: bool = False
    recommended: bool = False
    currency: str = "USD"

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def total_cost(self) -> float:
        return self.input_cost + self.output_cost

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            "inputCost": self.input_cost,
            "outputCost": self.output_cost,
            "totalCost": self.total_cost,
            "currency": self.currency,
            "tokenEstimate": {
                "inputTokens": self.input_tokens,
                "outputTokens": self.output_tokens,
                "totalTokens": self.total_tokens,
            },
            "warningsExceededContext": self.exceeds_context,
            "recommended": self.recommended,
            "formatted": format_cost(self.total_cost, self.currency),
        }


def _load_pricing_table(path: Path = PRICING_PATH) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fp:
        return yaml.safe_load(fp) or {}


def _to_pricing(entry: dict) -> ModelPricing:
    return ModelPricing(
        input_per_million=float(entry["input"]),
        output_per_million=float(entry["output"]),
        context_window=int(entry.get("context_window") or 0),
    )


def format_cost(cost: float, currency: str = "USD") -> str:
    if cost < 0.001:
        return f"<$0.001 {currency}"
    if cost < 0.01:
        return f"${cost:.4f} {currency}"
    return f"${cost:.3f} {currency}"


class CostEstimator:
    """Per-model pricing lookups and pre-flight estimates."""

    def __init__(self, table: dict | None = None) -> None:
        self._table = _load_pricing_table() if table is None else table

    def pricing(self, provider: Provider | str, model: str) -> ModelPricing | None:
        key = provider.value if isinstance(provider, Provider) else str(provider)
        entry = (self._table.get(key) or {}).get(model)
        if not isinstance(entry, dict):
            return None
        return _to_pricing(entry)

    def fallback_pricing(self) -> ModelPricing | None:
        entry = self._table.get("fallback")
        return _to_pricing(entry) if isinstance(entry, dict) else None

    def models(self, provider: Provider) -> list[tuple[str, ModelPricing]]:
        """Known models for ``provider``, cheapest first."""

        entries = [
            (model, _to_pricing(entry))
            for model, entry in (self._table.get(provider.value) or {}).items()
            if isinstance(entry, dict)
        ]
        return sorted(entries, key=lambda item: (item[1].input_per_million + item[1].output_per_million) / 2)

    def is_supported(self, provider: Provider | str, model: str) -> bool:
        return self.pricing(provider, model) is not None

    def estimate_cost(self, provider: Provider | str, model: str, input_tokens: int, output_tokens: int) -> float:
        """Cost of a finished call; unknown models use the fallback rate."""

        pricing = self.pricing(provider, model) or self.fallback_pricing()
        if pricing is None:
            return 0.0
        return (
            input_tokens / 1_000_000 * pricing.input_per_million
            + output_tokens / 1_000_000 * pricing.output_per_million
        )

    def estimate_enhancement_cost(
        self,
        request: EnhancementRequest,
        provider: Provider,
        model: str | None = None,
    ) -> CostEstimate | None:
        model = model or provider.info.default_model
        pricing = self.pricing(provider, model)
        if pricing is None:
            return None

        input_text = request.original_text
        if request.job_description:
            input_text += "\n" + request.job_description
        if request.user_instructions:
            input_text += "\n" + request.user_instructions
        input_tokens = estimate_tokens(input_text) + SYSTEM_PROMPT_TOKENS + FORMATTING_OVERHEAD_TOKENS

        scale = LEVEL_OUTPUT_SCALE.get(request.enhancement_level, 1.0)
        output_tokens = math.ceil(DEFAULT_OUTPUT_TOKENS * scale)

        exceeds = input_tokens + output_tokens > pricing.context_window
        if exceeds:
            output_tokens = max(500, pricing.context_window - input_tokens - 100)

        return CostEstimate(
            provider=provider.value,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            input_cost=input_tokens / 1_000_000 * pricing.input_per_million,
            output_cost=output_tokens / 1_000_000 * pricing.output_per_million,
            exceeds_context=exceeds,
        )

    def compare_providers(self, request: EnhancementRequest, per_provider: int = 2) -> list[CostEstimate]:
        """Estimate the cheapest models of every provider; the lowest is recommended."""

        estimates: list[CostEstimate] = []
        for provider in Provider:
            for model, _ in self.models(provider)[:per_provider]:
                estimate = self.estimate_enhancement_cost(request, provider, model)
                if estimate is not None:
                    estimates.append(estimate)
        estimates.sort(key=lambda item: item.total_cost)
        if estimates:
            estimates[0].recommended = True
        return estimates
