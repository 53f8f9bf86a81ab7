"""
External Analytics Rows

Read-only rows supplied by the caller:
- SearchRow: one (query, page) pair from a search-analytics export
- BehaviorRow: one page path from a behavioural analytics export
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List


@dataclass(frozen=True)
class SearchRow:
    """Per-query search performance for one page."""
    query: str
    page: str
    impressions: int
    clicks: int = 0
    ctr: float = 0.0
    position: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchRow":
        """
        Build a row from either the flat shape or the Search Console API
        shape, where query and page live in `keys`.
        """
        keys = data.get("keys")
        if keys:
            query = keys[0] if len(keys) > 0 else ""
            page = keys[1] if len(keys) > 1 else ""
        else:
            query = data.get("query", "")
            page = data.get("page", "")

        impressions = int(data.get("impressions", 0) or 0)
        clicks = int(data.get("clicks", 0) or 0)
        ctr = data.get("ctr")
        if ctr is None:
            ctr = clicks / impressions if impressions else 0.0

        return cls(
            query=str(query),
            page=str(page),
            impressions=impressions,
            clicks=clicks,
            ctr=float(ctr),
            position=float(data.get("position", 0.0) or 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "page": self.page,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "ctr": self.ctr,
            "position": self.position,
        }


@dataclass(frozen=True)
class BehaviorRow:
    """Behavioural metrics for one page path."""
    page_path: str
    sessions: int = 0
    engagement_rate: float = 0.0
    conversions: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BehaviorRow":
        return cls(
            page_path=str(data.get("page_path") or data.get("pagePath") or ""),
            sessions=int(data.get("sessions", 0) or 0),
            engagement_rate=float(data.get("engagement_rate", data.get("engagementRate", 0.0)) or 0.0),
            conversions=int(data.get("conversions", 0) or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_path": self.page_path,
            "sessions": self.sessions,
            "engagement_rate": self.engagement_rate,
            "conversions": self.conversions,
        }


def parse_search_rows(rows: Iterable[Any]) -> List[SearchRow]:
    """Accept SearchRow instances or dicts in either supported shape."""
    return [r if isinstance(r, SearchRow) else SearchRow.from_dict(r) for r in rows or []]


def parse_behavior_rows(rows: Iterable[Any]) -> List[BehaviorRow]:
    return [r if isinstance(r, BehaviorRow) else BehaviorRow.from_dict(r) for r in rows or []]
