"""External data integrations."""

from .dataforseo import (
    DataForSEOClient,
    DataForSEOError,
    KeywordMetrics,
    RetryConfig,
    build_metrics_client,
    first_result_items,
)

__all__ = [
    "DataForSEOClient",
    "DataForSEOError",
    "KeywordMetrics",
    "RetryConfig",
    "build_metrics_client",
    "first_result_items",
]
