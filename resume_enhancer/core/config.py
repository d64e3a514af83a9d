"""Environment driven settings."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    value = _env_float(name, default)
    return int(value) if value is not None else default


@dataclass(frozen=True, slots=True)
class Settings:
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_ORIGINS))
    log_level: str = "INFO"
    usage_log_path: Path | None = None
    request_timeout: float = 60.0
    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_factor: float = 2.0
    daily_limit: float | None = None
    monthly_limit: float | None = None
    alert_daily: float | None = None
    alert_monthly: float | None = None


def load_settings() -> Settings:
    """Read the process environment into a :class:`Settings` snapshot."""

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = list(DEFAULT_ORIGINS)

    usage_path = os.getenv("USAGE_LOG_PATH")

    return Settings(
        cors_origins=origins,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        usage_log_path=Path(usage_path) if usage_path else None,
        request_timeout=_env_float("AI_REQUEST_TIMEOUT", 60.0) or 60.0,
        max_attempts=max(1, _env_int("AI_MAX_ATTEMPTS", 3)),
        base_delay_ms=_env_int("AI_BASE_DELAY_MS", 1000),
        max_delay_ms=_env_int("AI_MAX_DELAY_MS", 10000),
        backoff_factor=_env_float("AI_BACKOFF_FACTOR", 2.0) or 2.0,
        daily_limit=_env_float("AI_DAILY_LIMIT", None),
        monthly_limit=_env_float("AI_MONTHLY_LIMIT", None),
        alert_daily=_env_float("AI_ALERT_DAILY", None),
        alert_monthly=_env_float("AI_ALERT_MONTHLY", None),
    )
