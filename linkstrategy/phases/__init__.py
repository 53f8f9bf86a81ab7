"""
Generation Phases

One module per phase; each declares its prompt and output shape and runs
through BasePhase.run().
"""

from .base import BasePhase
from .context import StrategicContext
from .clustering import ClusteringPhase
from .suggestions import SuggestionPhase, Strategy, select_candidates, MAX_SUGGESTIONS, HIGH_PRIORITY_SCORE
from .content_gap import ContentGapPhase
from .deep_analysis import DeepAnalysisPhase, opportunity_queries, rows_for_page
from .topical_authority import (
    PillarDiscoveryPhase,
    ContentMappingPhase,
    PillarGapPhase,
    BridgePhase,
    MAX_PILLARS,
    MAX_BRIDGES,
)
from .replication import ReplicationPhase
from .content_generation import ContentGenerationPhase
from .progress_summary import ProgressSummaryPhase, FALLBACK_SUMMARY

__all__ = [
    "BasePhase",
    "StrategicContext",
    "ClusteringPhase",
    "SuggestionPhase",
    "Strategy",
    "select_candidates",
    "MAX_SUGGESTIONS",
    "HIGH_PRIORITY_SCORE",
    "ContentGapPhase",
    "DeepAnalysisPhase",
    "opportunity_queries",
    "rows_for_page",
    "PillarDiscoveryPhase",
    "ContentMappingPhase",
    "PillarGapPhase",
    "BridgePhase",
    "MAX_PILLARS",
    "MAX_BRIDGES",
    "ReplicationPhase",
    "ContentGenerationPhase",
    "ProgressSummaryPhase",
    "FALLBACK_SUMMARY",
]
