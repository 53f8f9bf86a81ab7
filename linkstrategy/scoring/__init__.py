"""
Scoring Package

- rows: search and behavioural analytics rows
- opportunity: page-level opportunity ranking from search rows
- progress: period-over-period key wins
"""

from .rows import SearchRow, BehaviorRow, parse_search_rows, parse_behavior_rows
from .opportunity import OpportunityPage, calculate_opportunity_hub, MIN_IMPRESSIONS, TOP_N
from .progress import ProgressMetric, find_key_wins

__all__ = [
    "SearchRow",
    "BehaviorRow",
    "parse_search_rows",
    "parse_behavior_rows",
    "OpportunityPage",
    "calculate_opportunity_hub",
    "MIN_IMPRESSIONS",
    "TOP_N",
    "ProgressMetric",
    "find_key_wins",
]
