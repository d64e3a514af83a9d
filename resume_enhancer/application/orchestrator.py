"""Top-level coordinator for one user-initiated enhancement session."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from resume_enhancer.application.classifier import classify_error
from resume_enhancer.application.costs import CostEstimator
from resume_enhancer.application.history import EnhancementHistory
from resume_enhancer.application.parsing import parse_completion
from resume_enhancer.application.prompts import CONNECTION_TEST_PROMPT, CONNECTION_TEST_SYSTEM_PROMPT, build_prompts
from resume_enhancer.application.retry import CancelToken, RetryController, RetryPolicy, Sleep, Target
from resume_enhancer.application.usage import UsageTracker
from resume_enhancer.core.schema import EnhancementOptions, EnhancementRequest, EnhancementResult
from resume_enhancer.domain.errors import AIError, ErrorKind
from resume_enhancer.domain.providers import ModelInfo, Provider
from resume_enhancer.infrastructure.credentials import KeyStore
from resume_enhancer.infrastructure.providers import Completion, ProviderAdapter, ProviderRegistry

logger = logging.getLogger(__name__)

CONNECTION_TEST_MAX_TOKENS = 10


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _missing_key(provider: Provider) -> AIError:
    return AIError(
        provider,
        ErrorKind.API_KEY_INVALID,
        f"No API key configured for {provider.info.display_name}",
        suggestion="Add an API key in the AI settings",
    )


@dataclass(slots=True)
class ConnectionTestResult:
    success: bool
    provider: Provider
    model: str
    response_time_ms: int
    error: AIError | None = None
    tokens_used: int = 0

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "provider": self.provider.value,
            "model": self.model,
            "responseTime": self.response_time_ms,
            "tokensUsed": self.tokens_used,
        }
        if self.error is not None:
            payload["error"] = self.error.to_dict()
        return payload


class EnhancementOrchestrator:
    """Composes prompts, retries, parsing and accounting for each session.

    All per-call settings arrive through :class:`EnhancementOptions`; the
    orchestrator holds only its collaborators.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        policy: RetryPolicy | None = None,
        usage: UsageTracker | None = None,
        costs: CostEstimator | None = None,
        history: EnhancementHistory | None = None,
        key_store: KeyStore | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._controller = RetryController(registry, policy, sleep=sleep)
        self._usage = usage
        self._costs = costs or CostEstimator()
        self._history = history
        self._key_store = key_store

    @property
    def policy(self) -> RetryPolicy:
        return self._controller.policy

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _fallback_target(self, options: EnhancementOptions) -> Target | None:
        if not options.enable_fallback or options.fallback_provider is None:
            return None
        key = options.fallback_api_key
        if not key and self._key_store is not None:
            key = self._key_store.get_api_key(options.fallback_provider)
        if not key:
            logger.info("fallback provider %s has no API key; fallback disabled", options.fallback_provider.value)
            return None
        return Target(options.fallback_provider, key, options.fallback_model)

    def _record_failure(self, request: EnhancementRequest, target: Target, error: AIError, attempts: int, started: float) -> None:
        if self._usage is None:
            return
        self._usage.record(
            self._usage.new_event(
                provider=target.provider.value,
                model=target.resolved_model,
                operation="enhancement",
                tokens_used=0,
                estimated_cost=0.0,
                success=False,
                processing_time_ms=_elapsed_ms(started),
                error_type=error.kind.value,
                enhancement_level=request.enhancement_level,
                attempts=attempts,
            )
        )

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def enhance(
        self,
        request: EnhancementRequest,
        api_key: str | None,
        options: EnhancementOptions,
        *,
        cancel: CancelToken | None = None,
    ) -> EnhancementResult:
        """Run one session; raises :class:`AIError` once every option is exhausted."""

        if not api_key:
            raise _missing_key(options.provider)
        if cancel is not None:
            cancel.raise_if_cancelled()

        started = time.perf_counter()
        stamp = int(time.time() * 1000)
        prompts = build_prompts(request, stamp=stamp)
        primary = Target(options.provider, api_key, options.model)
        fallback = self._fallback_target(options)
        sequence_started = [started]

        async def call(adapter: ProviderAdapter, target: Target) -> Completion:
            return await adapter.send_completion(
                prompts.system,
                prompts.user,
                api_key=target.api_key,
                model=target.model,
                max_tokens=options.max_tokens,
                temperature=options.temperature,
            )

        def on_failed_sequence(target: Target, error: AIError, attempts: int) -> None:
            self._record_failure(request, target, error, attempts, sequence_started[0])
            sequence_started[0] = time.perf_counter()

        outcome = await self._controller.run(
            call,
            primary,
            fallback,
            cancel=cancel,
            on_failed_sequence=on_failed_sequence,
            max_attempts=options.max_attempts,
        )

        completion = outcome.value
        parsed = parse_completion(completion.text, request, stamp=stamp)
        provider = outcome.target.provider
        model = outcome.target.resolved_model
        cost = self._costs.estimate_cost(provider, model, completion.input_tokens, completion.output_tokens)

        result = EnhancementResult(
            original_data=request.parsed_data,
            enhanced_data=parsed.enhanced_data,
            suggestions=parsed.suggestions,
            confidence=parsed.confidence,
            provider=provider,
            model=model,
            processing_time_ms=_elapsed_ms(started),
            success=True,
            tokens_used=completion.total_tokens,
            estimated_cost=cost,
            attempts=outcome.total_calls,
            fallback_used=outcome.fallback_used,
        )

        if self._usage is not None:
            self._usage.record(
                self._usage.new_event(
                    provider=provider.value,
                    model=model,
                    operation="enhancement",
                    tokens_used=completion.total_tokens,
                    estimated_cost=cost,
                    success=True,
                    processing_time_ms=_elapsed_ms(sequence_started[0]),
                    confidence=result.confidence,
                    enhancement_level=request.enhancement_level,
                    suggestions_count=len(result.suggestions),
                    attempts=outcome.attempts,
                )
            )
        if self._history is not None:
            entry = self._history.add_entry(request, result)
            result.history_id = entry.id
        return result

    async def test_connection(self, provider: Provider, api_key: str | None, model: str | None = None) -> ConnectionTestResult:
        """Validate credentials with a tiny fixed prompt and a single attempt."""

        resolved = model or provider.info.default_model
        if not api_key:
            return ConnectionTestResult(False, provider, resolved, 0, error=_missing_key(provider))

        started = time.perf_counter()
        target = Target(provider, api_key, model)

        async def call(adapter: ProviderAdapter, target: Target) -> Completion:
            return await adapter.send_completion(
                CONNECTION_TEST_SYSTEM_PROMPT,
                CONNECTION_TEST_PROMPT,
                api_key=target.api_key,
                model=target.model,
                max_tokens=CONNECTION_TEST_MAX_TOKENS,
                temperature=0,
            )

        try:
            outcome = await self._controller.run(call, target, max_attempts=1)
        except AIError as exc:
            result = ConnectionTestResult(False, provider, resolved, _elapsed_ms(started), error=exc)
        else:
            result = ConnectionTestResult(
                True,
                provider,
                resolved,
                _elapsed_ms(started),
                tokens_used=outcome.value.total_tokens,
            )

        if self._usage is not None:
            self._usage.record_connection_test(
                provider.value,
                resolved,
                result.success,
                result.response_time_ms,
                error_type=result.error.kind.value if result.error else None,
            )
        return result

    async def list_models(self, provider: Provider, api_key: str | None) -> list[ModelInfo]:
        if not api_key:
            raise _missing_key(provider)
        adapter = self._registry.get(provider)
        try:
            return await adapter.list_models(api_key)
        except Exception as exc:
            raise classify_error(exc, provider) from exc
