from __future__ import annotations

import asyncio

import pytest

from resume_enhancer.application.retry import CancelToken, RetryController, RetryPolicy, Target
from resume_enhancer.domain.errors import AIError, EnhancementCancelled, ErrorKind
from resume_enhancer.domain.providers import Provider
from resume_enhancer.infrastructure.providers import ProviderRegistry

pytestmark = pytest.mark.anyio


def _send(adapter, target):
    return adapter.send_completion("system", "user", api_key=target.api_key, model=target.model)


def test_backoff_delays_grow_and_cap():
    policy = RetryPolicy(max_attempts=6, base_delay_ms=1000, max_delay_ms=10000, backoff_factor=2)

    assert [policy.delay_for(attempt) for attempt in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 10.0]


async def test_rate_limited_primary_recovers_on_third_attempt(scripted, http_error, recorded_sleep):
    primary = scripted(Provider.OPENAI, http_error(429), http_error(429), "ok")
    fallback = scripted(Provider.ANTHROPIC, "fallback")
    controller = RetryController(ProviderRegistry([primary, fallback]), sleep=recorded_sleep)

    outcome = await controller.run(
        _send,
        Target(Provider.OPENAI, "k1"),
        Target(Provider.ANTHROPIC, "k2"),
    )

    assert outcome.value.text == "ok"
    assert outcome.attempts == 3
    assert outcome.total_calls == 3
    assert outcome.fallback_used is False
    assert recorded_sleep.delays == [1.0, 2.0]
    assert len(primary.calls) == 3
    assert fallback.calls == []


async def test_invalid_key_skips_retries_and_switches_to_fallback(scripted, http_error, recorded_sleep):
    primary = scripted(Provider.OPENAI, http_error(401))
    fallback = scripted(Provider.GEMINI, "from gemini")
    failed: list[tuple[Provider, ErrorKind, int]] = []
    controller = RetryController(ProviderRegistry([primary, fallback]), sleep=recorded_sleep)

    outcome = await controller.run(
        _send,
        Target(Provider.OPENAI, "bad"),
        Target(Provider.GEMINI, "good", "gemini-1.5-flash"),
        on_failed_sequence=lambda target, error, attempts: failed.append((target.provider, error.kind, attempts)),
    )

    assert len(primary.calls) == 1
    assert fallback.calls[0]["api_key"] == "good"
    assert fallback.calls[0]["model"] == "gemini-1.5-flash"
    assert outcome.fallback_used is True
    assert outcome.target.provider is Provider.GEMINI
    assert outcome.total_calls == 2
    assert recorded_sleep.delays == []
    assert failed == [(Provider.OPENAI, ErrorKind.API_KEY_INVALID, 1)]


async def test_exhausted_primary_and_fallback_raise_last_error(scripted, http_error, recorded_sleep):
    primary = scripted(Provider.OPENAI, http_error(500))
    fallback = scripted(Provider.ANTHROPIC, http_error(429))
    controller = RetryController(
        ProviderRegistry([primary, fallback]),
        RetryPolicy(max_attempts=2),
        sleep=recorded_sleep,
    )

    with pytest.raises(Exception) as excinfo:
        await controller.run(_send, Target(Provider.OPENAI, "a"), Target(Provider.ANTHROPIC, "b"))

    assert excinfo.value.kind is ErrorKind.RATE_LIMIT
    assert excinfo.value.provider is Provider.ANTHROPIC
    assert len(primary.calls) == 2
    assert len(fallback.calls) == 2
    # one backoff per provider; no wait before switching
    assert recorded_sleep.delays == [1.0, 1.0]


async def test_without_fallback_the_classified_error_surfaces(scripted, http_error, recorded_sleep):
    primary = scripted(Provider.OPENAI, http_error(402))
    controller = RetryController(ProviderRegistry([primary]), sleep=recorded_sleep)

    with pytest.raises(Exception) as excinfo:
        await controller.run(_send, Target(Provider.OPENAI, "a"))

    assert excinfo.value.kind is ErrorKind.QUOTA_EXCEEDED
    assert len(primary.calls) == 1


async def test_max_attempts_override_limits_calls(scripted, http_error, recorded_sleep):
    primary = scripted(Provider.OPENAI, http_error(503))
    controller = RetryController(ProviderRegistry([primary]), sleep=recorded_sleep)

    with pytest.raises(Exception):
        await controller.run(_send, Target(Provider.OPENAI, "a"), max_attempts=1)

    assert len(primary.calls) == 1
    assert recorded_sleep.delays == []


async def test_cancel_aborts_in_flight_attempt(scripted):
    started = asyncio.Event()

    class Hanging(scripted):
        async def send_completion(self, *args, **kwargs):
            started.set()
            await asyncio.sleep(30)

    controller = RetryController(ProviderRegistry([Hanging(Provider.OPENAI, "never")]))
    token = CancelToken()
    task = asyncio.ensure_future(controller.run(_send, Target(Provider.OPENAI, "a"), cancel=token))
    await started.wait()
    token.cancel()

    with pytest.raises(EnhancementCancelled):
        await task


async def test_cancelling_the_caller_stops_the_in_flight_attempt(scripted):
    started = asyncio.Event()
    outcome = []

    class Hanging(scripted):
        async def send_completion(self, *args, **kwargs):
            started.set()
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                outcome.append("cancelled")
                raise
            outcome.append("completed")

    controller = RetryController(ProviderRegistry([Hanging(Provider.OPENAI, "never")]))
    task = asyncio.ensure_future(controller.run(_send, Target(Provider.OPENAI, "a"), cancel=CancelToken()))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert outcome == ["cancelled"]


async def test_cancel_before_start_makes_no_calls(scripted):
    primary = scripted(Provider.OPENAI, "ok")
    controller = RetryController(ProviderRegistry([primary]))
    token = CancelToken()
    token.cancel()

    with pytest.raises(EnhancementCancelled):
        await controller.run(_send, Target(Provider.OPENAI, "a"), cancel=token)

    assert primary.calls == []


async def test_missing_adapter_moves_on_to_fallback(scripted, recorded_sleep):
    fallback = scripted(Provider.GEMINI, "from gemini")
    controller = RetryController(ProviderRegistry([fallback]), sleep=recorded_sleep)

    outcome = await controller.run(_send, Target(Provider.OPENAI, "a"), Target(Provider.GEMINI, "g"))

    assert outcome.value.text == "from gemini"
    assert outcome.fallback_used is True
    assert outcome.total_calls == 1

    with pytest.raises(AIError) as excinfo:
        await controller.run(_send, Target(Provider.ANTHROPIC, "a"))
    assert excinfo.value.kind is ErrorKind.MODEL_UNAVAILABLE
