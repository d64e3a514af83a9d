"""Turn raw adapter failures into typed :class:`AIError` values."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx

from resume_enhancer.domain.errors import AIError, EmptyCompletionError, ErrorKind
from resume_enhancer.domain.providers import Provider

_BILLING_MARKERS = ("insufficient_quota", "billing", "credit balance", "quota exceeded", "exceeded your current quota")
_KEY_MARKERS = ("api key not valid", "api_key_invalid", "invalid x-api-key", "invalid api key", "incorrect api key")
_MODEL_MARKERS = ("model_not_found", "does not exist", "not_found_error")

_MESSAGES: dict[ErrorKind, tuple[str, str]] = {
    ErrorKind.RATE_LIMIT: (
        "Rate limit exceeded. Please try again later.",
        "Consider upgrading your API plan or trying a different provider",
    ),
    ErrorKind.API_KEY_INVALID: (
        "Invalid API key. Please check your configuration.",
        "Verify your API key in the AI settings",
    ),
    ErrorKind.QUOTA_EXCEEDED: (
        "API quota exceeded or billing issue.",
        "Check your billing status or try a different provider",
    ),
    ErrorKind.NETWORK_ERROR: (
        "Network error occurred. Please check your connection.",
        "Check your internet connection and try again",
    ),
    ErrorKind.MODEL_UNAVAILABLE: (
        "The specified model is not available.",
        "Try a different model or check the provider's documentation",
    ),
    ErrorKind.UNKNOWN: (
        "Unexpected error",
        "Please try again or contact support if the issue persists",
    ),
}


def _parse_retry_after(value: str | None) -> int | None:
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0, int((when - datetime.now(timezone.utc)).total_seconds()))


def _response_text(response: httpx.Response) -> str:
    try:
        return response.text.lower()
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return ""


def _kind_for_status(status: int, body: str) -> ErrorKind:
    if status == 402 or any(marker in body for marker in _BILLING_MARKERS):
        return ErrorKind.QUOTA_EXCEEDED
    if status == 429:
        return ErrorKind.RATE_LIMIT
    if status in {401, 403} or any(marker in body for marker in _KEY_MARKERS):
        return ErrorKind.API_KEY_INVALID
    if status == 404 or any(marker in body for marker in _MODEL_MARKERS):
        return ErrorKind.MODEL_UNAVAILABLE
    return ErrorKind.UNKNOWN


def _build(provider: Provider, kind: ErrorKind, *, detail: str = "", **extra: object) -> AIError:
    message, suggestion = _MESSAGES[kind]
    if kind is ErrorKind.UNKNOWN and detail:
        message = f"{message}: {detail}"
    return AIError(provider, kind, message, suggestion=suggestion, **extra)  # type: ignore[arg-type]


def classify_error(error: BaseException, provider: Provider) -> AIError:
    """Map ``error`` onto the closed error taxonomy for ``provider``."""

    if isinstance(error, AIError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        status = response.status_code
        kind = _kind_for_status(status, _response_text(response))
        retry_after = _parse_retry_after(response.headers.get("retry-after")) if kind is ErrorKind.RATE_LIMIT else None
        if kind is ErrorKind.RATE_LIMIT and retry_after is None:
            retry_after = 60
        return _build(
            provider,
            kind,
            detail=f"HTTP {status}",
            retry_after=retry_after,
            status_code=status,
        )

    if isinstance(error, (httpx.TransportError, TimeoutError, ConnectionError)):
        return _build(provider, ErrorKind.NETWORK_ERROR, retry_after=30)

    if isinstance(error, EmptyCompletionError):
        return _build(provider, ErrorKind.UNKNOWN, detail=str(error))

    return _build(provider, ErrorKind.UNKNOWN, detail=str(error) or type(error).__name__)


@dataclass(slots=True)
class RecoveryPlan:
    """Affordances the UI offers next to a surfaced error."""

    actions: list[str] = field(default_factory=list)
    links: dict[str, str] = field(default_factory=dict)
    retry_after: int | None = None

    def to_dict(self) -> dict[str, object]:
        return {"actions": list(self.actions), "links": dict(self.links), "retryAfter": self.retry_after}


_FALLBACK_KINDS = {
    ErrorKind.RATE_LIMIT,
    ErrorKind.QUOTA_EXCEEDED,
    ErrorKind.NETWORK_ERROR,
    ErrorKind.MODEL_UNAVAILABLE,
}


def recovery_plan(error: AIError, attempts_used: int = 0, max_attempts: int = 3) -> RecoveryPlan:
    plan = RecoveryPlan(retry_after=error.retry_after)
    if error.retryable and attempts_used < max_attempts:
        plan.actions.append("retry")
    if error.kind in _FALLBACK_KINDS:
        plan.actions.append("fallback")
    if error.kind is ErrorKind.API_KEY_INVALID:
        plan.actions.append("open_settings")

    provider = error.provider if isinstance(error.provider, Provider) else None
    if provider is not None:
        info = provider.info
        if error.kind is ErrorKind.API_KEY_INVALID:
            plan.links["keys"] = info.keys_url
        elif error.kind in {ErrorKind.QUOTA_EXCEEDED, ErrorKind.RATE_LIMIT}:
            plan.links["billing"] = info.billing_url
            plan.links["pricing"] = info.pricing_url
    return plan
