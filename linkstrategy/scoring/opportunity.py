"""
Opportunity Scorer

Ranks pages by unexploited search traffic:

    average_ctr       = sum(ctr * impressions) / total_impressions
    opportunity_score = total_impressions * (1 - average_ctr)

The formula favours high-visibility, low-engagement pages.
Pages at or below the impression noise floor are discarded and only the
top results are kept.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .rows import SearchRow

logger = logging.getLogger(__name__)

MIN_IMPRESSIONS = 100
TOP_N = 15


@dataclass(frozen=True)
class OpportunityPage:
    """A page ranked by growth potential."""
    url: str
    title: str
    opportunity_score: float
    total_impressions: int
    average_ctr: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "opportunity_score": self.opportunity_score,
            "total_impressions": self.total_impressions,
            "average_ctr": self.average_ctr,
        }


def calculate_opportunity_hub(
    rows: Optional[Iterable[SearchRow]],
    titles: Optional[Mapping[str, str]] = None,
    min_impressions: int = MIN_IMPRESSIONS,
    top_n: int = TOP_N,
) -> List[OpportunityPage]:
    """
    Aggregate search rows per page and rank pages by opportunity.

    Args:
        rows: Per-query search rows
        titles: URL -> title lookup (from the authority scores); the URL is
            used as title for unknown pages
        min_impressions: Pages with total impressions <= this are dropped
        top_n: Maximum number of pages returned

    Returns:
        OpportunityPages sorted by opportunity_score, highest first
    """
    titles = titles or {}
    totals: Dict[str, int] = {}
    weighted_ctr: Dict[str, float] = {}

    for row in rows or []:
        if not row.page:
            continue
        totals[row.page] = totals.get(row.page, 0) + row.impressions
        weighted_ctr[row.page] = weighted_ctr.get(row.page, 0.0) + row.ctr * row.impressions

    opportunities = []
    for url, impressions in totals.items():
        if impressions <= min_impressions:
            continue
        average_ctr = weighted_ctr[url] / impressions if impressions > 0 else 0.0
        opportunities.append(OpportunityPage(
            url=url,
            title=titles.get(url, url),
            opportunity_score=impressions * (1 - average_ctr),
            total_impressions=impressions,
            average_ctr=average_ctr,
        ))

    opportunities.sort(key=lambda p: p.opportunity_score, reverse=True)
    logger.info(
        f"Opportunity hub: {len(totals)} pages with search data, "
        f"{len(opportunities)} above noise floor, keeping {min(len(opportunities), top_n)}"
    )
    return opportunities[:top_n]
