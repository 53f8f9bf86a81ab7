"""
Run Results

- Report: aggregate of the primary analysis run
- ProgressReport: period-over-period search performance comparison
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..graph.authority import AuthorityScore
from ..graph.links import AdjacencyMap, to_serializable
from ..phases.schemas import ContentGapSuggestion, LinkSuggestion, ThematicCluster
from ..phases.suggestions import HIGH_PRIORITY_SCORE
from ..scoring.opportunity import OpportunityPage
from ..scoring.progress import ProgressMetric
from ..scoring.rows import BehaviorRow, SearchRow
from .runner import PhaseFailure


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Report:
    """Result of one primary analysis run. Built once, then handed to the caller."""
    site: str
    pages_scanned: int
    thematic_clusters: List[ThematicCluster]
    suggestions: List[LinkSuggestion]
    page_diagnostics: List[AuthorityScore]
    opportunity_hub: List[OpportunityPage]
    internal_links_map: AdjacencyMap
    content_gap_suggestions: List[ContentGapSuggestion] = field(default_factory=list)
    search_site_url: Optional[str] = None
    search_data: List[SearchRow] = field(default_factory=list)
    behavior_data: List[BehaviorRow] = field(default_factory=list)
    phase_failures: List[PhaseFailure] = field(default_factory=list)
    generated_at: str = field(default_factory=utc_now_iso)

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "pages_scanned": self.pages_scanned,
            # Every collected page is published; no separate indexability check
            "indexable_pages": self.pages_scanned,
            "suggestions_total": len(self.suggestions),
            "high_priority": sum(1 for s in self.suggestions if s.score >= HIGH_PRIORITY_SCORE),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "site": self.site,
            "search_site_url": self.search_site_url,
            "generated_at": self.generated_at,
            "summary": self.summary,
            "thematic_clusters": [c.model_dump() for c in self.thematic_clusters],
            "suggestions": [s.model_dump() for s in self.suggestions],
            "content_gap_suggestions": [c.model_dump() for c in self.content_gap_suggestions],
            "page_diagnostics": [d.to_diagnostic() for d in self.page_diagnostics],
            "opportunity_hub": [o.to_dict() for o in self.opportunity_hub],
            "internal_links_map": to_serializable(self.internal_links_map),
            "search_data": [r.to_dict() for r in self.search_data],
            "behavior_data": [r.to_dict() for r in self.behavior_data],
            "phase_failures": [f.to_dict() for f in self.phase_failures],
        }


@dataclass
class ProgressReport:
    site: str
    previous_report_date: str
    key_wins: List[ProgressMetric]
    ai_summary: str
    current_report_date: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "site": self.site,
            "previous_report_date": self.previous_report_date,
            "current_report_date": self.current_report_date,
            "key_wins": [w.to_dict() for w in self.key_wins],
            "ai_summary": self.ai_summary,
        }
