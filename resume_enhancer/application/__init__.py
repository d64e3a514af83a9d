"""Application services."""

from .classifier import RecoveryPlan, classify_error, recovery_plan
from .context import AppContext, build_context, close_context, configure_context, get_context, reset_context
from .costs import CostEstimate, CostEstimator
from .history import EnhancementHistory
from .orchestrator import ConnectionTestResult, EnhancementOrchestrator
from .parsing import degraded_result, extract_json_object, parse_completion
from .prompts import PromptPair, build_prompts
from .retry import CancelToken, RetryController, RetryOutcome, RetryPolicy, Target
from .suggestions import ReviewSessions, SuggestionReview
from .usage import UsageTracker

__all__ = [
    "AppContext",
    "CancelToken",
    "ConnectionTestResult",
    "CostEstimate",
    "CostEstimator",
    "EnhancementHistory",
    "EnhancementOrchestrator",
    "PromptPair",
    "RecoveryPlan",
    "RetryController",
    "RetryOutcome",
    "RetryPolicy",
    "ReviewSessions",
    "SuggestionReview",
    "Target",
    "UsageTracker",
    "build_context",
    "build_prompts",
    "classify_error",
    "close_context",
    "configure_context",
    "degraded_result",
    "extract_json_object",
    "get_context",
    "parse_completion",
    "recovery_plan",
    "reset_context",
]
