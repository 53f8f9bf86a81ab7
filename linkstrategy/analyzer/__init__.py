"""
Analyzer Package

- client: Claude client producing structured (tool-call) output
- retry: transient-failure classification and backoff combinator
"""

from .client import ClaudeClient, GenerationError, SchemaValidationError, TokenUsage
from .retry import (
    RetryPolicy,
    backoff_delay,
    call_with_policy,
    call_with_retry,
    is_transient_error,
)

__all__ = [
    "ClaudeClient",
    "GenerationError",
    "SchemaValidationError",
    "TokenUsage",
    "RetryPolicy",
    "backoff_delay",
    "call_with_policy",
    "call_with_retry",
    "is_transient_error",
]
