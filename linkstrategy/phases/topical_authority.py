"""
Topical Authority Phases

Four stages of the topical authority roadmap:
- PillarDiscoveryPhase: 2-5 strategic pillars from business intent
- ContentMappingPhase: each existing page mapped to at most one pillar
- PillarGapPhase: content-gap roadmap for one pillar (run concurrently)
- BridgePhase: 1-3 cross-pillar bridge articles (best effort)
"""

import logging
from typing import Dict, List, Type

from .base import BasePhase
from .schemas import (
    BridgeResult,
    ContentMapResult,
    PhaseModel,
    PillarDiscoveryResult,
    PillarGapResult,
    PillarPages,
)

logger = logging.getLogger(__name__)

MAX_PILLARS = 5
MAX_BRIDGES = 3


def _business_context(context) -> str:
    return (
        f'- Site objective (source context): "{context.source_context}"\n'
        f'- Target user intent (central intent): "{context.central_intent}"'
    )


class PillarDiscoveryPhase(BasePhase):

    @property
    def name(self) -> str:
        return "pillar_discovery"

    @property
    def display_name(self) -> str:
        return "Pillar Discovery"

    @property
    def output_model(self) -> Type[PhaseModel]:
        return PillarDiscoveryResult

    @property
    def required_inputs(self) -> List[str]:
        return ["site_root", "clusters", "diagnostics", "strategic_context"]

    @property
    def system_prompt(self) -> str:
        return "You are a top-tier business consultant and SEO strategist."

    def build_prompt(self, site_root: str, clusters, diagnostics, strategic_context, **_) -> str:
        geo = ""
        if strategic_context.geographic_focus:
            geo = (
                f'\n- Primary geographic focus: "{strategic_context.geographic_focus}". '
                "Take it into account when defining pillars, especially for topics such as local SEO."
            )
        cluster_names = ", ".join(f'"{c.cluster_name}"' for c in clusters)
        titles = ", ".join(f'"{d.title}"' for d in diagnostics)

        return f"""Identify the 2-{MAX_PILLARS} strategic topical "pillars" for the site {site_root}, based on its business goals and existing content.

STRATEGIC INPUTS:
{_business_context(strategic_context)}
- Current thematic clusters: {cluster_names}
- Titles of all pages: {titles}{geo}

DECISION PROCESS:
1. START FROM THE BUSINESS, NOT THE CONTENT: which 2-{MAX_PILLARS} macro-topics must this site cover to reach its business goal?
2. USE CONTENT TO VALIDATE, NOT TO LIMIT: refine the pillar names with the existing titles and clusters.
3. IGNORE VOLUME: a vital topic with little content is as much a pillar as one with many pages.
4. BE COMPLETE: identify strategically necessary pillars even if they are almost absent from the content.

Return only the pillar names.
"""

    def postprocess(self, result: PillarDiscoveryResult, **inputs) -> PillarDiscoveryResult:
        pillars = []
        for pillar in result.pillars:
            pillar = pillar.strip()
            if pillar and pillar not in pillars:
                pillars.append(pillar)
        if len(pillars) > MAX_PILLARS:
            logger.info(f"[{self.name}] Truncating {len(pillars)} pillars to {MAX_PILLARS}")
        return result.model_copy(update={"pillars": pillars[:MAX_PILLARS]})


class ContentMappingPhase(BasePhase):

    @property
    def name(self) -> str:
        return "content_mapping"

    @property
    def display_name(self) -> str:
        return "Content Mapper"

    @property
    def output_model(self) -> Type[PhaseModel]:
        return ContentMapResult

    @property
    def required_inputs(self) -> List[str]:
        return ["pillars", "diagnostics"]

    @property
    def system_prompt(self) -> str:
        return "You are an Information Architect mapping web pages to topical pillars."

    def build_prompt(self, pillars, diagnostics, **_) -> str:
        pillar_list = "\n".join(f"- {p}" for p in pillars)
        url_list = "\n".join(d.url for d in diagnostics)
        return f"""Map the following web pages to the given topical pillars.

PILLARS:
{pillar_list}

ALL PAGES (URL):
{url_list}

INSTRUCTIONS:
For each pillar list the URLs of the pages that belong to it. A page belongs to at most one pillar; leave out pages that fit none. Use the exact pillar names and URLs above.
"""

    def postprocess(self, result: ContentMapResult, pillars=None, diagnostics=None, **inputs) -> ContentMapResult:
        known_pillars = list(pillars or [])
        known_urls = {d.url for d in diagnostics or []}
        assigned = set()
        pages_by_pillar: Dict[str, List[str]] = {p: [] for p in known_pillars}

        for entry in result.mapped_content:
            if entry.pillar_name not in pages_by_pillar:
                logger.debug(f"[{self.name}] Dropping unknown pillar '{entry.pillar_name}'")
                continue
            for url in entry.pages:
                if url in assigned or url not in known_urls:
                    continue
                assigned.add(url)
                pages_by_pillar[entry.pillar_name].append(url)

        return ContentMapResult(mapped_content=[
            PillarPages(pillar_name=name, pages=pages) for name, pages in pages_by_pillar.items()
        ])


class PillarGapPhase(BasePhase):
    """Roadmap for one pillar. Failures are isolated per pillar."""

    fatal = False

    @property
    def name(self) -> str:
        return "pillar_gap_analysis"

    @property
    def display_name(self) -> str:
        return "Gap Analysis"

    @property
    def output_model(self) -> Type[PhaseModel]:
        return PillarGapResult

    @property
    def required_inputs(self) -> List[str]:
        return ["site_root", "pillar", "strategic_context"]

    @property
    def system_prompt(self) -> str:
        return (
            "You are the leading expert on the given topic with deep knowledge of semantic SEO. "
            "You only ever suggest content that is genuinely missing."
        )

    def build_prompt(self, site_root: str, pillar: str, strategic_context, existing_pages=None, **_) -> str:
        geo = ""
        if strategic_context.geographic_focus:
            location = strategic_context.geographic_focus
            geo = (
                f'\n- GEOGRAPHIC FOCUS: orient the analysis strongly towards "{location}". '
                f'Article suggestions must be contextualised to it (e.g. "Best Restaurants in {location}").'
            )
        existing = "\n".join(existing_pages or []) or "No existing pages found for this pillar."

        return f"""Create a content roadmap that closes the topical gaps of the site {site_root} for the pillar "{pillar}".

BUSINESS CONTEXT:
{_business_context(strategic_context)}{geo}

PAGES THE SITE ALREADY HAS FOR THIS PILLAR:
{existing}

ANALYSIS IN 4 STEPS:
1. BUILD THE IDEAL MAP of every subtopic an expert would cover for "{pillar}", from basics to advanced.
2. COMPARE it with the existing pages.
3. OUTPUT ONLY THE GAPS: never suggest content already covered, even partially.
4. AVOID OVERLAP: merge near-duplicate ideas into one article in the most relevant cluster.

OUTPUT:
- 'strategic_summary': the state of the pillar and the strategy to close the gaps.
- 'cluster_suggestions': 2-4 clusters of missing articles, each with 'cluster_name', 'strategic_rationale', 'impact_score' (1-10), 'impact_rationale' and 'article_suggestions' ('title', 3-5 'target_queries', 'section_type' Core or Outer, 'unique_angle').
"""


class BridgePhase(BasePhase):
    """Cross-pillar bridge articles. Best effort: failures are omitted."""

    fatal = False

    @property
    def name(self) -> str:
        return "bridge_suggestions"

    @property
    def display_name(self) -> str:
        return "Bridge Builder"

    @property
    def output_model(self) -> Type[PhaseModel]:
        return BridgeResult

    @property
    def required_inputs(self) -> List[str]:
        return ["pillars", "strategic_context"]

    @property
    def system_prompt(self) -> str:
        return "You are a holistic SEO strategist connecting topical pillars into one authoritative domain."

    def build_prompt(self, pillars, strategic_context, **_) -> str:
        pillar_list = "\n".join(f"- {p}" for p in pillars)
        return f"""Identify 1-{MAX_BRIDGES} opportunities for "bridge" articles that semantically connect two different pillars of the site.

PILLARS:
{pillar_list}

BUSINESS CONTEXT:
{_business_context(strategic_context)}

INSTRUCTIONS:
1. Find the most synergistic pillar pairs.
2. For each pair suggest an article title that builds a logical bridge between them.
3. Explain briefly why the article is a good strategic bridge.
4. Give a few relevant target queries.
5. Keep every suggestion aligned with the business context.
"""

    def postprocess(self, result: BridgeResult, **inputs) -> BridgeResult:
        return result.model_copy(update={"bridge_suggestions": result.bridge_suggestions[:MAX_BRIDGES]})

