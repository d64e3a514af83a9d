"""Error taxonomy shared by the provider pipeline."""
from __future__ import annotations

from enum import Enum

from .providers import Provider


class ErrorKind(str, Enum):
    RATE_LIMIT = "rate_limit"
    API_KEY_INVALID = "api_key_invalid"
    QUOTA_EXCEEDED = "quota_exceeded"
    NETWORK_ERROR = "network_error"
    MODEL_UNAVAILABLE = "model_unavailable"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self not in {ErrorKind.API_KEY_INVALID, ErrorKind.QUOTA_EXCEEDED}


class AIError(RuntimeError):
    """Classified provider failure surfaced to the caller."""

    def __init__(
        self,
        provider: Provider | str,
        kind: ErrorKind,
        message: str,
        *,
        suggestion: str | None = None,
        retry_after: int | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.kind = kind
        self.message = message
        self.suggestion = suggestion
        self.retry_after = retry_after
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    @property
    def provider_name(self) -> str:
        return self.provider.value if isinstance(self.provider, Provider) else str(self.provider)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "provider": self.provider_name,
            "type": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        if self.retry_after is not None:
            payload["retryAfter"] = self.retry_after
        if self.status_code is not None:
            payload["statusCode"] = self.status_code
        return payload

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"AIError(provider={self.provider_name!r}, kind={self.kind.value!r}, message={self.message!r})"


class EmptyCompletionError(RuntimeError):
    """Raised by an adapter when the vendor response carries no text."""

    def __init__(self, provider: Provider, detail: str = "") -> None:
        message = f"No content received from {provider.info.display_name}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.provider = provider


class EnhancementCancelled(Exception):
    """Raised when the caller cancels an orchestration in flight."""
