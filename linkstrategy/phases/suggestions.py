"""
Suggestion Generation Phase (Semantic Linking Strategist)

Produces the top internal link suggestions for the site. The strategy
selector narrows or reframes the candidate pages:
- global: every page is a candidate
- pillar: only pages in the cluster containing the pillar URL
- money: every page is a candidate, framed around linking to the money page
"""

import logging
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Type

from ..collector.models import Page
from .base import BasePhase, format_behavior_rows, format_search_rows
from .schemas import PhaseModel, SuggestionResult, ThematicCluster

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 10
HIGH_PRIORITY_SCORE = 0.75


class Strategy(str, Enum):
    GLOBAL = "global"
    PILLAR = "pillar"
    MONEY = "money"


def select_candidates(
    pages: Sequence[Page],
    clusters: Sequence[ThematicCluster],
    strategy: Strategy = Strategy.GLOBAL,
    target_urls: Optional[Sequence[str]] = None,
) -> Tuple[List[Page], str]:
    """
    Apply the strategy selector.

    Returns:
        (candidate pages, natural-language framing of the strategy)
    """
    candidates = list(pages)
    description = "Analysis strategy: Global. Consider every page of the site for internal linking opportunities."
    target_urls = list(target_urls or [])

    if strategy == Strategy.PILLAR and target_urls:
        pillar_url = target_urls[0]
        cluster = next((c for c in clusters if pillar_url in c.pages), None)
        if cluster is not None:
            members = set(cluster.pages)
            candidates = [p for p in pages if p.url in members]
            description = (
                f'Analysis strategy: Pillar Page. Focus on the "{cluster.cluster_name}" cluster '
                f"to strengthen its internal coherence, starting from the pillar page {pillar_url}."
            )
        else:
            logger.warning(f"Pillar URL {pillar_url} is not in any cluster, using global strategy")
    elif strategy == Strategy.MONEY and target_urls:
        money_url = target_urls[0]
        description = (
            "Analysis strategy: Money Page. The primary goal is to find opportunities to link "
            f"to the high-conversion page {money_url}, increasing its authority."
        )

    return candidates, description


class SuggestionPhase(BasePhase):
    """Generates internal link suggestions. Fatal."""

    @property
    def name(self) -> str:
        return "link_suggestions"

    @property
    def display_name(self) -> str:
        return "Semantic Linking Strategist"

    @property
    def output_model(self) -> Type[PhaseModel]:
        return SuggestionResult

    @property
    def required_inputs(self) -> List[str]:
        return ["site_root", "pages", "clusters", "authority"]

    @property
    def system_prompt(self) -> str:
        return """You are a world-class SEO strategist specialised in semantic internal linking.

<behavioral_constraints>
You NEVER:
- Link pages with near-identical content or pages competing for the same queries
- Suggest links without a clear topical and intent rationale
- Pad the list with low-impact suggestions

You ALWAYS:
- Prioritise links that support the conversion funnel (informational Outer Section -> transactional Core Section)
- Provide three anchor text variants per suggestion
- Flag cannibalization risks with the competing queries and remediation steps
</behavioral_constraints>"""

    def build_prompt(
        self,
        site_root: str,
        pages,
        clusters,
        authority,
        strategy: Strategy = Strategy.GLOBAL,
        target_urls=None,
        search_rows=None,
        behavior_rows=None,
        **_,
    ) -> str:
        candidates, strategy_description = select_candidates(
            pages, clusters, Strategy(strategy), target_urls
        )

        page_context = "\n".join(
            f'Page: "{a.title}" (URL: {a.url}, Authority: {a.score:.1f}/10)' for a in authority
        )
        candidate_list = "\n\n".join(
            f'- URL: {p.url}\n  Title: "{p.title}"\n  Content (excerpt): "{p.excerpt(300)}..."'
            for p in candidates
        )

        if search_rows:
            search_part = (
                "Real search performance data (first 200 rows). Use it as the primary source "
                "for page importance and user intent.\nFormat: 'query', 'page', impressions, ctr\n"
                + format_search_rows(search_rows, 200)
            )
        else:
            search_part = "No search performance data provided. Base the analysis on the site structure only."

        if behavior_rows:
            behavior_part = (
                "Behavioural analytics data. Use it to judge the strategic value of pages.\n"
                "Format: 'pagePath', sessions, engagementRate, conversions\n"
                + format_behavior_rows(behavior_rows, 150)
            )
        else:
            behavior_part = "No behavioural analytics data provided."

        return f"""Analyse the website and generate {MAX_SUGGESTIONS} high-quality internal link suggestions.

SITE: {site_root}
{strategy_description}

STRATEGIC CONTEXT:
{page_context}
{search_part}
{behavior_part}

CANDIDATE PAGES:
{candidate_list}

INSTRUCTIONS:
1. STRATEGY FIRST: links from informational pages (Outer Section) to transactional pages (Core Section) carry the highest value.
2. DO NOT LINK IDENTICAL PAGES: avoid pages with near-identical content or competing for the same queries. Flag any risk.
3. QUALITY OVER QUANTITY: only {MAX_SUGGESTIONS} suggestions with real strategic impact.
4. PLACEMENT: for high-value links (Outer -> Core) suggest a 'late' position in the content.
5. ANCHOR VARIATION: always give 3 anchor text variants.
6. INTENT: always comment on intent alignment (e.g. "informational to transactional").
7. Score every suggestion between 0 and 1.
"""

    def postprocess(self, result: SuggestionResult, **inputs) -> SuggestionResult:
        if len(result.suggestions) > MAX_SUGGESTIONS:
            logger.info(f"[{self.name}] Truncating {len(result.suggestions)} suggestions to {MAX_SUGGESTIONS}")
            result = result.model_copy(update={"suggestions": result.suggestions[:MAX_SUGGESTIONS]})
        return result
