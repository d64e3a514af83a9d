"""Infrastructure layer exports."""

from .credentials import InMemoryKeyStore, KeyStore
from .history import HistoryRepository, InMemoryHistoryRepository
from .providers import (
    AnthropicAdapter,
    Completion,
    GeminiAdapter,
    OpenAIAdapter,
    ProviderAdapter,
    ProviderRegistry,
    build_default_registry,
)
from .usage_log import InMemoryUsageLog, JsonlUsageLog, UsageLog

__all__ = [
    "AnthropicAdapter",
    "Completion",
    "GeminiAdapter",
    "HistoryRepository",
    "InMemoryHistoryRepository",
    "InMemoryKeyStore",
    "InMemoryUsageLog",
    "JsonlUsageLog",
    "KeyStore",
    "OpenAIAdapter",
    "ProviderAdapter",
    "ProviderRegistry",
    "UsageLog",
    "build_default_registry",
]
