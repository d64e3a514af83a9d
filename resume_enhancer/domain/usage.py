"""Usage accounting and enhancement history entities."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal

Operation = Literal["enhancement", "test_connection"]


@dataclass(frozen=True, slots=True)
class UsageEvent:
    """One terminal attempt sequence against a provider. Never mutated."""

    id: str
    timestamp: datetime
    provider: str
    model: str
    tokens_used: int
    estimated_cost: float
    success: bool
    processing_time_ms: int
    operation: Operation = "enhancement"
    confidence: float | None = None
    error_type: str | None = None
    enhancement_level: str | None = None
    suggestions_count: int = 0
    attempts: int = 1

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UsageEvent":
        payload = dict(data)
        payload["timestamp"] = datetime.fromisoformat(str(payload["timestamp"]))
        known = {name for name in cls.__dataclass_fields__}
        return cls(**{key: value for key, value in payload.items() if key in known})


@dataclass(slots=True)
class UsageStats:
    total_events: int
    total_tokens: int
    total_cost: float
    total_processing_time_ms: int
    success_rate: float
    avg_confidence: float
    avg_processing_time_ms: float
    provider_usage: dict[str, int]
    operation_counts: dict[str, int]
    enhancement_level_usage: dict[str, int]
    window_start: datetime
    window_end: datetime

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["window_start"] = self.window_start.isoformat()
        data["window_end"] = self.window_end.isoformat()
        return data


@dataclass(slots=True)
class CostLimits:
    """User-set spending limits; amounts are advisory USD estimates."""

    daily_limit: float | None = None
    monthly_limit: float | None = None
    alert_daily: float | None = None
    alert_monthly: float | None = None
    warning_ratio: float = 0.8


@dataclass(frozen=True, slots=True)
class CostAlert:
    kind: str
    current: float
    threshold: float

    @property
    def percentage(self) -> float:
        if not self.threshold:
            return 0.0
        return round(self.current / self.threshold * 100, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "current": self.current,
            "threshold": self.threshold,
            "percentage": self.percentage,
        }


@dataclass(slots=True)
class CostMonitoring:
    """Spending snapshot recomputed from the usage log on demand."""

    today: float
    this_month: float
    projected_daily: float
    projected_monthly: float
    limits: CostLimits
    alerts: list[CostAlert] = field(default_factory=list)

    @property
    def projected_overspend(self) -> bool:
        limit = self.limits.monthly_limit
        return limit is not None and self.projected_monthly > limit

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentSpending": {"today": self.today, "thisMonth": self.this_month},
            "projectedSpending": {"daily": self.projected_daily, "monthly": self.projected_monthly},
            "dailyLimit": self.limits.daily_limit,
            "monthlyLimit": self.limits.monthly_limit,
            "alertThresholds": {"daily": self.limits.alert_daily, "monthly": self.limits.alert_monthly},
            "projectedOverspend": self.projected_overspend,
            "alerts": [alert.to_dict() for alert in self.alerts],
        }


@dataclass(slots=True)
class HistoryEntry:
    """A completed orchestration session and the user's review actions."""

    id: str
    timestamp: datetime
    result: Any
    provider: str
    model: str
    mode: str
    enhancement_level: str
    has_job_description: bool
    focus_areas: tuple[str, ...] = ()
    estimated_cost: float = 0.0
    tags: list[str] = field(default_factory=list)
    accepted_suggestions: list[str] = field(default_factory=list)
    rejected_suggestions: list[str] = field(default_factory=list)
    notes: str = ""

    @property
    def suggestion_ids(self) -> list[str]:
        return [suggestion.id for suggestion in self.result.suggestions]

    @property
    def acceptance_rate(self) -> float:
        total = len(self.result.suggestions)
        if not total:
            return 0.0
        return len(self.accepted_suggestions) / total

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "provider": self.provider,
            "model": self.model,
            "mode": self.mode,
            "enhancementLevel": self.enhancement_level,
            "hasJobDescription": self.has_job_description,
            "focusAreas": list(self.focus_areas),
            "confidence": self.result.confidence,
            "processingTimeMs": self.result.processing_time_ms,
            "estimatedCost": self.estimated_cost,
            "tags": list(self.tags),
            "suggestionsCount": len(self.result.suggestions),
            "acceptedSuggestions": list(self.accepted_suggestions),
            "rejectedSuggestions": list(self.rejected_suggestions),
            "acceptanceRate": self.acceptance_rate,
            "notes": self.notes,
        }
