"""Process-wide wiring of the enhancement services."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass

from resume_enhancer.application.costs import CostEstimator
from resume_enhancer.application.history import EnhancementHistory
from resume_enhancer.application.orchestrator import EnhancementOrchestrator
from resume_enhancer.application.retry import RetryPolicy, Sleep
from resume_enhancer.application.suggestions import ReviewSessions
from resume_enhancer.application.usage import UsageTracker
from resume_enhancer.core.config import Settings, load_settings
from resume_enhancer.domain.usage import CostLimits
from resume_enhancer.infrastructure import (
    InMemoryKeyStore,
    InMemoryUsageLog,
    JsonlUsageLog,
    KeyStore,
    ProviderRegistry,
    build_default_registry,
)


@dataclass(slots=True)
class AppContext:
    settings: Settings
    registry: ProviderRegistry
    key_store: KeyStore
    usage: UsageTracker
    costs: CostEstimator
    history: EnhancementHistory
    reviews: ReviewSessions
    orchestrator: EnhancementOrchestrator


def build_context(
    settings: Settings | None = None,
    *,
    registry: ProviderRegistry | None = None,
    key_store: KeyStore | None = None,
    sleep: Sleep = asyncio.sleep,
) -> AppContext:
    settings = settings or load_settings()
    registry = registry or build_default_registry(timeout=settings.request_timeout)
    key_store = key_store or InMemoryKeyStore.from_env()

    log = JsonlUsageLog(settings.usage_log_path) if settings.usage_log_path else InMemoryUsageLog()
    limits = CostLimits(
        daily_limit=settings.daily_limit,
        monthly_limit=settings.monthly_limit,
        alert_daily=settings.alert_daily,
        alert_monthly=settings.alert_monthly,
    )
    usage = UsageTracker(log, limits)
    costs = CostEstimator()
    history = EnhancementHistory()
    policy = RetryPolicy(
        max_attempts=settings.max_attempts,
        base_delay_ms=settings.base_delay_ms,
        max_delay_ms=settings.max_delay_ms,
        backoff_factor=settings.backoff_factor,
    )
    orchestrator = EnhancementOrchestrator(
        registry,
        policy=policy,
        usage=usage,
        costs=costs,
        history=history,
        key_store=key_store,
        sleep=sleep,
    )
    return AppContext(
        settings=settings,
        registry=registry,
        key_store=key_store,
        usage=usage,
        costs=costs,
        history=history,
        reviews=ReviewSessions(history),
        orchestrator=orchestrator,
    )


_context: AppContext | None = None


def configure_context(context: AppContext) -> None:
    """Install the context used by the HTTP routes."""

    global _context
    _context = context


def get_context() -> AppContext:
    """Return the process context, building the default one on first use."""

    global _context
    if _context is None:
        _context = build_context()
    return _context


def reset_context() -> None:
    """Drop the process context (used in tests)."""

    global _context
    _context = None


async def close_context() -> None:
    """Release the HTTP clients held by the current context."""

    global _context
    if _context is not None:
        await _context.registry.aclose()
        _context = None
