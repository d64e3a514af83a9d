"""Domain layer definitions."""

from .errors import AIError, EmptyCompletionError, EnhancementCancelled, ErrorKind
from .providers import PROVIDER_INFO, ModelInfo, Provider, ProviderInfo, format_model_name
from .usage import CostAlert, CostLimits, CostMonitoring, HistoryEntry, UsageEvent, UsageStats

__all__ = [
    "AIError",
    "CostAlert",
    "CostLimits",
    "CostMonitoring",
    "EmptyCompletionError",
    "EnhancementCancelled",
    "ErrorKind",
    "HistoryEntry",
    "ModelInfo",
    "PROVIDER_INFO",
    "Provider",
    "ProviderInfo",
    "UsageEvent",
    "UsageStats",
    "format_model_name",
]
