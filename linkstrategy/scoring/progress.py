"""
Search Performance Progress

Compares two search-analytics snapshots keyed by (query, page) and extracts
the most significant improvements ("key wins").
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple

from .rows import SearchRow

MIN_IMPRESSIONS = 50
MIN_CTR_GAIN = 0.005
MIN_POSITION_GAIN = 0.5
MAX_KEY_WINS = 10


@dataclass(frozen=True)
class ProgressMetric:
    """Change of one (query, page) pair between two periods."""
    page: str
    query: str
    initial_ctr: float
    current_ctr: float
    initial_position: float
    current_position: float

    @property
    def ctr_change(self) -> float:
        return self.current_ctr - self.initial_ctr

    @property
    def position_change(self) -> float:
        # Negative means the page moved up
        return self.current_position - self.initial_position

    @property
    def significance(self) -> float:
        return self.ctr_change * 100 - self.position_change

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "query": self.query,
            "initial_ctr": self.initial_ctr,
            "current_ctr": self.current_ctr,
            "initial_position": self.initial_position,
            "current_position": self.current_position,
            "ctr_change": self.ctr_change,
            "position_change": self.position_change,
        }


def find_key_wins(
    previous: Iterable[SearchRow],
    current: Iterable[SearchRow],
    limit: int = MAX_KEY_WINS,
) -> List[ProgressMetric]:
    """
    Pair rows by (query, page) and keep meaningful improvements.

    A pair qualifies when both periods have more than MIN_IMPRESSIONS and
    either CTR rose by more than MIN_CTR_GAIN or the position improved by
    more than MIN_POSITION_GAIN.
    """
    before: Dict[Tuple[str, str], SearchRow] = {(r.query, r.page): r for r in previous}

    metrics = []
    for row in current:
        old = before.get((row.query, row.page))
        if old is None:
            continue
        if row.impressions <= MIN_IMPRESSIONS or old.impressions <= MIN_IMPRESSIONS:
            continue
        metric = ProgressMetric(
            page=row.page,
            query=row.query,
            initial_ctr=old.ctr,
            current_ctr=row.ctr,
            initial_position=old.position,
            current_position=row.position,
        )
        if metric.ctr_change > MIN_CTR_GAIN or metric.position_change < -MIN_POSITION_GAIN:
            metrics.append(metric)

    metrics.sort(key=lambda m: m.significance, reverse=True)
    return metrics[:limit]
