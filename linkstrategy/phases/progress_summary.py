"""
Progress Summary Phase (SEO Analyst)

Short narrative of the key wins between two search-data snapshots.
Optional: the progress report falls back to a fixed text without it.
"""

from typing import List, Type

from .base import BasePhase
from .schemas import PhaseModel, ProgressSummary

FALLBACK_SUMMARY = "Analysis not available."


class ProgressSummaryPhase(BasePhase):

    fatal = False

    @property
    def name(self) -> str:
        return "progress_summary"

    @property
    def display_name(self) -> str:
        return "SEO Analyst"

    @property
    def output_model(self) -> Type[PhaseModel]:
        return ProgressSummary

    @property
    def required_inputs(self) -> List[str]:
        return ["site", "previous_date", "key_wins"]

    @property
    def system_prompt(self) -> str:
        return "You are an SEO analyst reporting progress to a client."

    def build_prompt(self, site: str, previous_date: str, key_wins, **_) -> str:
        wins = "\n".join(
            f'- Query "{w.query}" for page {w.page} improved CTR by {w.ctr_change * 100:.2f} points '
            f"and position by {-w.position_change:.1f} places."
            for w in key_wins
        ) or "- No significant improvements."
        return f"""Analyse the following performance data comparing two periods and write a short paragraph ('ai_summary') summarising the most significant progress.

SITE: {site}
PREVIOUS PERIOD: {previous_date}

KEY WINS (CTR and position improvements):
{wins}

INSTRUCTIONS:
- Be encouraging and professional.
- Mention 2-3 specific examples from the key wins.
- Point out if the improvements concentrate on specific topics.
- Finish with one strategic tip to keep the momentum.
"""
