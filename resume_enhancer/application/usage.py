"""Usage accounting, aggregate statistics and spend monitoring."""
from __future__ import annotations

import calendar
import json
import logging
import math
import uuid
from collections import Counter
from dataclasses import fields
from datetime import datetime, timedelta, timezone
from typing import Callable, Literal

import pandas as pd

from resume_enhancer.domain.usage import CostAlert, CostLimits, CostMonitoring, UsageEvent, UsageStats
from resume_enhancer.infrastructure.usage_log import InMemoryUsageLog, UsageLog

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

CSV_COLUMNS = [
    "timestamp",
    "provider",
    "model",
    "operation",
    "tokensUsed",
    "estimatedCost",
    "processingTime",
    "success",
    "suggestionsCount",
    "attempts",
    "confidence",
    "errorType",
]

CONNECTION_TEST_TOKENS = 10
CONNECTION_TEST_COST = 0.001


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_event_id(now: datetime) -> str:
    return f"event-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"


class UsageTracker:
    """Append-only usage log plus query-time aggregates.

    Spend alerts are derived whenever monitoring is computed; nothing runs in
    the background.
    """

    def __init__(
        self,
        log: UsageLog | None = None,
        limits: CostLimits | None = None,
        *,
        clock: Clock = _utcnow,
        alert_sink: Callable[[CostAlert], None] | None = None,
    ) -> None:
        self._log = log or InMemoryUsageLog()
        self._limits = limits or CostLimits()
        self._clock = clock
        self._alert_sink = alert_sink

    # ------------------------------------------------------------------
    # recording
    # ------------------------------------------------------------------
    def record(self, event: UsageEvent) -> UsageEvent:
        self._log.append(event)
        for alert in self.get_cost_monitoring().alerts:
            logger.warning(
                "AI usage cost alert %s: %.4f of %.4f (%.1f%%)",
                alert.kind,
                alert.current,
                alert.threshold,
                alert.percentage,
            )
            if self._alert_sink is not None:
                self._alert_sink(alert)
        return event

    def new_event(self, **values: object) -> UsageEvent:
        now = self._clock()
        return UsageEvent(id=new_event_id(now), timestamp=now, **values)  # type: ignore[arg-type]

    def record_connection_test(
        self,
        provider: str,
        model: str,
        success: bool,
        processing_time_ms: int,
        error_type: str | None = None,
    ) -> UsageEvent:
        return self.record(
            self.new_event(
                provider=provider,
                model=model,
                operation="test_connection",
                tokens_used=CONNECTION_TEST_TOKENS,
                estimated_cost=CONNECTION_TEST_COST,
                success=success,
                processing_time_ms=processing_time_ms,
                error_type=error_type,
            )
        )

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def events(self) -> list[UsageEvent]:
        return sorted(self._log.events(), key=lambda event: event.timestamp)

    def recent_events(self, limit: int = 50) -> list[UsageEvent]:
        return list(reversed(self.events()))[:limit]

    def get_stats(self, window_days: int = 30) -> UsageStats:
        end = self._clock()
        start = end - timedelta(days=window_days)
        window = [event for event in self.events() if start <= event.timestamp <= end]

        total = len(window)
        confidences = [event.confidence for event in window if event.confidence is not None]
        processing = sum(event.processing_time_ms for event in window)
        levels = Counter(event.enhancement_level for event in window if event.operation == "enhancement" and event.enhancement_level)

        return UsageStats(
            total_events=total,
            total_tokens=sum(event.tokens_used for event in window),
            total_cost=sum(event.estimated_cost for event in window),
            total_processing_time_ms=processing,
            success_rate=(sum(1 for event in window if event.success) / total) if total else 0.0,
            avg_confidence=(sum(confidences) / len(confidences)) if confidences else 0.0,
            avg_processing_time_ms=(processing / total) if total else 0.0,
            provider_usage=dict(Counter(event.provider for event in window)),
            operation_counts=dict(Counter(event.operation for event in window)),
            enhancement_level_usage=dict(levels),
            window_start=start,
            window_end=end,
        )

    def get_cost_monitoring(self) -> CostMonitoring:
        now = self._clock()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_month = start_of_day.replace(day=1)

        events = self.events()
        today = sum(event.estimated_cost for event in events if event.timestamp >= start_of_day)
        this_month = sum(event.estimated_cost for event in events if event.timestamp >= start_of_month)
        days_in_month = calendar.monthrange(now.year, now.month)[1]
        projected_monthly = this_month / now.day * days_in_month

        monitoring = CostMonitoring(
            today=today,
            this_month=this_month,
            projected_daily=today,
            projected_monthly=projected_monthly,
            limits=self._limits,
        )
        monitoring.alerts = self._alerts(monitoring)
        return monitoring

    def _alerts(self, monitoring: CostMonitoring) -> list[CostAlert]:
        limits = self._limits
        alerts: list[CostAlert] = []
        if limits.alert_daily and monitoring.today >= limits.alert_daily:
            alerts.append(CostAlert("daily_threshold", monitoring.today, limits.alert_daily))
        if limits.alert_monthly and monitoring.this_month >= limits.alert_monthly:
            alerts.append(CostAlert("monthly_threshold", monitoring.this_month, limits.alert_monthly))
        if limits.daily_limit:
            if monitoring.today >= limits.daily_limit:
                alerts.append(CostAlert("daily_limit_exceeded", monitoring.today, limits.daily_limit))
            elif monitoring.today >= limits.daily_limit * limits.warning_ratio:
                alerts.append(CostAlert("daily_warning", monitoring.today, limits.daily_limit))
        if limits.monthly_limit:
            if monitoring.this_month >= limits.monthly_limit:
                alerts.append(CostAlert("monthly_limit_exceeded", monitoring.this_month, limits.monthly_limit))
            elif monitoring.projected_overspend:
                alerts.append(
                    CostAlert("monthly_overspend_projected", monitoring.projected_monthly, limits.monthly_limit)
                )
        return alerts

    # ------------------------------------------------------------------
    # settings and maintenance
    # ------------------------------------------------------------------
    @property
    def limits(self) -> CostLimits:
        return self._limits

    def set_cost_limits(self, **changes: float | None) -> CostLimits:
        known = {item.name for item in fields(CostLimits)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"unknown cost limit(s): {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            if value is not None and (not math.isfinite(value) or value < 0):
                raise ValueError(f"{name} must be a non-negative number")
        for name, value in changes.items():
            setattr(self._limits, name, value)
        return self._limits

    def export_usage(self, fmt: Literal["json", "csv"] = "json") -> str:
        events = list(reversed(self.events()))
        if fmt == "csv":
            rows = [
                {
                    "timestamp": event.timestamp.isoformat(),
                    "provider": event.provider,
                    "model": event.model,
                    "operation": event.operation,
                    "tokensUsed": event.tokens_used,
                    "estimatedCost": event.estimated_cost,
                    "processingTime": event.processing_time_ms,
                    "success": event.success,
                    "suggestionsCount": event.suggestions_count,
                    "attempts": event.attempts,
                    "confidence": event.confidence,
                    "errorType": event.error_type,
                }
                for event in events
            ]
            return pd.DataFrame(rows, columns=CSV_COLUMNS).to_csv(index=False)
        if fmt == "json":
            return json.dumps([event.to_dict() for event in events], indent=2, ensure_ascii=False)
        raise ValueError(f"unsupported export format: {fmt}")

    def clear_old_data(self, days_to_keep: int = 90) -> int:
        cutoff = self._clock() - timedelta(days=days_to_keep)
        events = self.events()
        kept = [event for event in events if event.timestamp >= cutoff]
        self._log.replace(kept)
        return len(events) - len(kept)

    def reset(self) -> None:
        self._log.reset()
        self._limits = CostLimits()
