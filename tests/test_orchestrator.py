from __future__ import annotations

import json

import pytest

from resume_enhancer.application.costs import CostEstimator
from resume_enhancer.application.history import EnhancementHistory
from resume_enhancer.application.orchestrator import EnhancementOrchestrator
from resume_enhancer.application.retry import CancelToken
from resume_enhancer.application.usage import UsageTracker
from resume_enhancer.core.schema import EnhancementOptions
from resume_enhancer.domain.errors import AIError, EnhancementCancelled, ErrorKind
from resume_enhancer.domain.providers import Provider
from resume_enhancer.infrastructure.credentials import InMemoryKeyStore
from resume_enhancer.infrastructure.providers import ProviderRegistry

pytestmark = pytest.mark.anyio


def _orchestrator(*adapters, recorded_sleep, key_store=None):
    usage = UsageTracker()
    history = EnhancementHistory()
    orchestrator = EnhancementOrchestrator(
        ProviderRegistry(adapters),
        usage=usage,
        costs=CostEstimator(),
        history=history,
        key_store=key_store,
        sleep=recorded_sleep,
    )
    return orchestrator, usage, history


def _completion_text(document, confidence=0.95, suggestions=()):
    return json.dumps({"enhancedData": document.to_wire(), "suggestions": list(suggestions), "confidence": confidence})


async def test_enhance_returns_parsed_result_and_records_usage(scripted, enhance_request, recorded_sleep):
    adapter = scripted(Provider.OPENAI, _completion_text(enhance_request.parsed_data))
    orchestrator, usage, history = _orchestrator(adapter, recorded_sleep=recorded_sleep)

    result = await orchestrator.enhance(enhance_request, "sk-test", EnhancementOptions(provider=Provider.OPENAI))

    assert result.success is True
    assert result.confidence == 0.95
    assert result.suggestions == []
    assert result.provider is Provider.OPENAI
    assert result.model == "gpt-4o"
    assert result.attempts == 1
    assert result.fallback_used is False
    assert result.tokens_used == 1500
    assert result.estimated_cost == pytest.approx(0.0075)
    assert result.enhanced_data == enhance_request.parsed_data

    events = usage.events()
    assert len(events) == 1
    assert events[0].success is True
    assert events[0].confidence == 0.95
    assert events[0].enhancement_level == "light"
    assert events[0].estimated_cost == pytest.approx(0.0075)

    assert result.history_id is not None
    assert history.get_entry(result.history_id).result is result

    call = adapter.calls[0]
    assert call["api_key"] == "sk-test"
    assert call["max_tokens"] == 2000
    assert call["temperature"] == 0.7
    assert "Focus on grammar" in call["system"]


async def test_missing_key_fails_before_any_network_call(scripted, enhance_request, recorded_sleep):
    adapter = scripted(Provider.ANTHROPIC, "unused")
    orchestrator, usage, _ = _orchestrator(adapter, recorded_sleep=recorded_sleep)

    with pytest.raises(AIError) as excinfo:
        await orchestrator.enhance(enhance_request, "", EnhancementOptions(provider=Provider.ANTHROPIC))

    assert excinfo.value.kind is ErrorKind.API_KEY_INVALID
    assert adapter.calls == []
    assert usage.events() == []


async def test_fallback_after_invalid_key_records_one_event_per_sequence(scripted, http_error, enhance_request, recorded_sleep):
    primary = scripted(Provider.OPENAI, http_error(401))
    fallback = scripted(Provider.GEMINI, _completion_text(enhance_request.parsed_data, confidence=0.6))
    key_store = InMemoryKeyStore({Provider.GEMINI: "gemini-key"})
    orchestrator, usage, _ = _orchestrator(primary, fallback, recorded_sleep=recorded_sleep, key_store=key_store)
    options = EnhancementOptions(
        provider=Provider.OPENAI,
        enable_fallback=True,
        fallback_provider=Provider.GEMINI,
        fallback_model="gemini-1.5-flash",
    )

    result = await orchestrator.enhance(enhance_request, "bad-key", options)

    assert result.provider is Provider.GEMINI
    assert result.model == "gemini-1.5-flash"
    assert result.fallback_used is True
    assert result.attempts == 2
    assert fallback.calls[0]["api_key"] == "gemini-key"

    failure, success = usage.events()
    assert (failure.provider, failure.success, failure.error_type) == ("openai", False, "api_key_invalid")
    assert (success.provider, success.success, success.confidence) == ("gemini", True, 0.6)


async def test_fallback_without_key_is_skipped(scripted, http_error, enhance_request, recorded_sleep):
    primary = scripted(Provider.OPENAI, http_error(402))
    fallback = scripted(Provider.ANTHROPIC, "never")
    orchestrator, usage, _ = _orchestrator(primary, fallback, recorded_sleep=recorded_sleep, key_store=InMemoryKeyStore())
    options = EnhancementOptions(provider=Provider.OPENAI, enable_fallback=True, fallback_provider=Provider.ANTHROPIC)

    with pytest.raises(AIError) as excinfo:
        await orchestrator.enhance(enhance_request, "k", options)

    assert excinfo.value.kind is ErrorKind.QUOTA_EXCEEDED
    assert fallback.calls == []
    assert [event.error_type for event in usage.events()] == ["quota_exceeded"]


async def test_exhausted_retries_surface_error_with_attempt_count(scripted, http_error, enhance_request, recorded_sleep):
    adapter = scripted(Provider.OPENAI, http_error(429, headers={"retry-after": "20"}))
    orchestrator, usage, history = _orchestrator(adapter, recorded_sleep=recorded_sleep)

    with pytest.raises(AIError) as excinfo:
        await orchestrator.enhance(enhance_request, "k", EnhancementOptions(provider=Provider.OPENAI))

    assert excinfo.value.kind is ErrorKind.RATE_LIMIT
    assert excinfo.value.retry_after == 20
    assert len(adapter.calls) == 3
    assert recorded_sleep.delays == [1.0, 2.0]
    [event] = usage.events()
    assert event.attempts == 3
    assert history.list_entries() == []


async def test_unparseable_completion_degrades_instead_of_failing(scripted, enhance_request, recorded_sleep):
    adapter = scripted(Provider.ANTHROPIC, "I am sorry, I cannot help with that.")
    orchestrator, usage, _ = _orchestrator(adapter, recorded_sleep=recorded_sleep)

    result = await orchestrator.enhance(enhance_request, "k", EnhancementOptions(provider=Provider.ANTHROPIC))

    assert result.success is True
    assert result.confidence == 0.1
    assert [suggestion.id for suggestion in result.suggestions] == ["parse-error"]
    assert result.enhanced_data == enhance_request.parsed_data
    assert usage.events()[0].confidence == 0.1


async def test_cancelled_session_records_nothing(scripted, enhance_request, recorded_sleep):
    adapter = scripted(Provider.OPENAI, "unused")
    orchestrator, usage, _ = _orchestrator(adapter, recorded_sleep=recorded_sleep)
    token = CancelToken()
    token.cancel()

    with pytest.raises(EnhancementCancelled):
        await orchestrator.enhance(enhance_request, "k", EnhancementOptions(provider=Provider.OPENAI), cancel=token)

    assert adapter.calls == []
    assert usage.events() == []


async def test_connection_test_makes_single_small_call(scripted, recorded_sleep):
    adapter = scripted(Provider.GEMINI, "OK")
    orchestrator, usage, _ = _orchestrator(adapter, recorded_sleep=recorded_sleep)

    result = await orchestrator.test_connection(Provider.GEMINI, "gk")

    assert result.success is True
    assert result.model == "gemini-2.5-flash"
    assert adapter.calls[0]["max_tokens"] == 10
    assert adapter.calls[0]["temperature"] == 0
    [event] = usage.events()
    assert event.operation == "test_connection"
    assert event.tokens_used == 10
    assert event.estimated_cost == pytest.approx(0.001)


async def test_connection_test_reports_failure_without_retrying(scripted, http_error, recorded_sleep):
    adapter = scripted(Provider.OPENAI, http_error(503))
    orchestrator, usage, _ = _orchestrator(adapter, recorded_sleep=recorded_sleep)

    result = await orchestrator.test_connection(Provider.OPENAI, "k", "gpt-4o-mini")

    assert result.success is False
    assert result.error.kind is ErrorKind.UNKNOWN
    assert len(adapter.calls) == 1
    assert recorded_sleep.delays == []
    payload = result.to_dict()
    assert payload["model"] == "gpt-4o-mini"
    assert payload["error"]["statusCode"] == 503
    assert usage.events()[0].error_type == "unknown"


async def test_non_finite_confidence_still_resolves(scripted, enhance_request, recorded_sleep):
    adapter = scripted(Provider.OPENAI, '{"suggestions": [], "confidence": NaN}')
    orchestrator, usage, _ = _orchestrator(adapter, recorded_sleep=recorded_sleep)

    result = await orchestrator.enhance(enhance_request, "sk-test", EnhancementOptions(provider=Provider.OPENAI))

    assert result.success is True
    assert result.confidence == 0.8
    assert usage.events()[0].confidence == 0.8


async def test_unregistered_provider_raises_typed_error(scripted, enhance_request, recorded_sleep):
    orchestrator, usage, _ = _orchestrator(scripted(Provider.OPENAI, "unused"), recorded_sleep=recorded_sleep)

    with pytest.raises(AIError) as excinfo:
        await orchestrator.enhance(enhance_request, "ak-test", EnhancementOptions(provider=Provider.ANTHROPIC))

    assert excinfo.value.kind is ErrorKind.MODEL_UNAVAILABLE
    assert usage.events() == []
