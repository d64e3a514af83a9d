"""Bounded retry with a single cross-provider fallback."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

from resume_enhancer.application.classifier import classify_error
from resume_enhancer.domain.errors import AIError, EnhancementCancelled
from resume_enhancer.domain.providers import Provider
from resume_enhancer.infrastructure.providers import ProviderAdapter, ProviderRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_factor: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed ``attempt`` (1-based)."""

        delay_ms = min(self.base_delay_ms * self.backoff_factor ** (attempt - 1), self.max_delay_ms)
        return delay_ms / 1000


class CancelToken:
    """Caller-held signal that aborts the in-flight attempt or backoff."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise EnhancementCancelled("enhancement cancelled by caller")


@dataclass(frozen=True, slots=True)
class Target:
    """One provider the controller may call."""

    provider: Provider
    api_key: str
    model: str | None = None

    @property
    def resolved_model(self) -> str:
        return self.model or self.provider.info.default_model


@dataclass(slots=True)
class RetryOutcome(Generic[T]):
    value: T
    target: Target
    attempts: int
    total_calls: int
    fallback_used: bool


FailedSequence = Callable[[Target, AIError, int], None]


class RetryController:
    """Runs a provider call with exponential backoff and one fallback switch.

    Attempts against one provider are strictly sequential.  A non-retryable
    failure ends the current provider's sequence at once; the fallback, when
    given, then runs its own full attempt budget.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        policy: RetryPolicy | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def run(
        self,
        request: Callable[[ProviderAdapter, Target], Awaitable[T]],
        primary: Target,
        fallback: Target | None = None,
        *,
        cancel: CancelToken | None = None,
        on_failed_sequence: FailedSequence | None = None,
        max_attempts: int | None = None,
    ) -> RetryOutcome[T]:
        budget = max_attempts or self._policy.max_attempts
        targets = [primary] if fallback is None else [primary, fallback]
        last_error: AIError | None = None
        total_calls = 0

        for index, target in enumerate(targets):
            try:
                adapter = self._registry.get(target.provider)
            except AIError as exc:
                last_error = exc
                logger.warning("%s has no registered adapter", target.provider.value)
                continue
            attempt = 0
            while attempt < budget:
                attempt += 1
                total_calls += 1
                try:
                    value = await self._guard(request(adapter, target), cancel)
                except EnhancementCancelled:
                    raise
                except Exception as exc:
                    last_error = classify_error(exc, target.provider)
                    logger.warning(
                        "%s attempt %s/%s failed: %s",
                        target.provider.value,
                        attempt,
                        budget,
                        last_error.kind.value,
                    )
                    if not last_error.retryable or attempt >= budget:
                        break
                    await self._guard(self._sleep(self._policy.delay_for(attempt)), cancel)
                    continue
                return RetryOutcome(
                    value=value,
                    target=target,
                    attempts=attempt,
                    total_calls=total_calls,
                    fallback_used=index > 0,
                )

            assert last_error is not None
            if on_failed_sequence is not None:
                on_failed_sequence(target, last_error, attempt)
            if index + 1 < len(targets):
                logger.info(
                    "switching from %s to fallback provider %s",
                    target.provider.value,
                    targets[index + 1].provider.value,
                )

        assert last_error is not None
        raise last_error

    async def _guard(self, awaitable: Awaitable[T], cancel: CancelToken | None) -> T:
        """Await ``awaitable`` unless ``cancel`` fires first."""

        if cancel is None:
            return await awaitable
        if cancel.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            cancel.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        if cancel.cancelled:
            await asyncio.gather(task, return_exceptions=True)
            raise EnhancementCancelled("enhancement cancelled by caller")
        return task.result()
