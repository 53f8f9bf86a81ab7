"""
Content-Gap Analysis Phase (Content Strategist)

Proposes missing content topics that strengthen the existing clusters,
scored by commercial opportunity. Keyword market data is attached
afterwards by the orchestrator, one item at a time.
"""

from typing import List, Type

from .base import (
    BasePhase,
    format_strategic_context,
)
from .schemas import ContentGapResult, PhaseModel


class ContentGapPhase(BasePhase):
    """Optional enrichment of the primary run."""

    fatal = False

    @property
    def name(self) -> str:
        return "content_gap"

    @property
    def display_name(self) -> str:
        return "Content Strategist"

    @property
    def output_model(self) -> Type[PhaseModel]:
        return ContentGapResult

    @property
    def required_inputs(self) -> List[str]:
        return ["site_root", "clusters"]

    @property
    def system_prompt(self) -> str:
        return (
            "You are a world-class content strategist and SEO. You find missing content "
            "that a site needs to win its market, and you never suggest content the site "
            "most likely already has."
        )

    def build_prompt(
        self,
        site_root: str,
        clusters,
        search_rows=None,
        behavior_rows=None,
        strategic_context=None,
        **_,
    ) -> str:
        cluster_list = "\n".join(f"- {c.cluster_name}: {c.cluster_description}" for c in clusters)

        if search_rows:
            search_part = "Search data (first 100 rows):\n" + "\n".join(
                f"{r.query}, {r.page}, {r.impressions}, {r.ctr:.4f}" for r in search_rows[:100]
            ) + "\nUse it to find queries with high impressions and low CTR."
        else:
            search_part = "No search data provided."

        if behavior_rows:
            behavior_part = "Behavioural data (first 100 rows):\n" + "\n".join(
                f"{r.page_path}, sessions: {r.sessions}, engagement: {r.engagement_rate:.2f}"
                for r in behavior_rows[:100]
            ) + "\nUse it to find popular pages with low engagement that would benefit from supporting content."
        else:
            behavior_part = "No behavioural data provided."

        return f"""Analyse the data of a website to find strategic content gaps.

SITE: {site_root}
{format_strategic_context(strategic_context)}

EXISTING THEMATIC CLUSTERS:
{cluster_list}

PERFORMANCE DATA:
{search_part}
{behavior_part}

INSTRUCTIONS:
1. Identify 5-7 missing content opportunities that strengthen existing clusters or create new strategic ones.
2. For each, give a compelling title and a short description of why it is an opportunity.
3. Assign each suggestion to the most relevant cluster.
4. COMMERCIAL PRIORITY: give a 'commercial_opportunity_score' from 1 to 10. 8-10 means closely aligned with the business objective and transactional intent; 1-4 means informational content that builds trust far from conversion.
5. Explain the score in 'commercial_opportunity_rationale'.
6. If the search data contains a specific relevant query, include it as 'target_query'.
7. Do NOT suggest content that most likely already exists given the cluster names.
"""
