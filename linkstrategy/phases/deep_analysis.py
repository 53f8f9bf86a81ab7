"""
Deep Single-Page Analysis Phase (Semantic SEO Coach)

Authority-aware action plan for one page: strategic role, checklist,
inbound links from stronger pages, outbound links, content enhancements
and the page's opportunity queries.
"""

import logging
from typing import List, Type

from ..scoring.rows import SearchRow
from .base import BasePhase
from .schemas import DeepAnalysisReport, PhaseModel

logger = logging.getLogger(__name__)

MAX_BODY_CHARS = 8000
MAX_PAGE_ROWS = 50
OPPORTUNITY_MIN_IMPRESSIONS = 50
OPPORTUNITY_MAX_CTR = 0.03


def rows_for_page(rows, page_url: str) -> List[SearchRow]:
    return [r for r in rows or [] if r.page == page_url][:MAX_PAGE_ROWS]


def opportunity_queries(rows: List[SearchRow]) -> List[SearchRow]:
    """High-impression, low-CTR queries."""
    return [
        r for r in rows
        if r.impressions > OPPORTUNITY_MIN_IMPRESSIONS and r.ctr < OPPORTUNITY_MAX_CTR
    ]


class DeepAnalysisPhase(BasePhase):

    @property
    def name(self) -> str:
        return "deep_analysis"

    @property
    def display_name(self) -> str:
        return "Semantic SEO Coach"

    @property
    def output_model(self) -> Type[PhaseModel]:
        return DeepAnalysisReport

    @property
    def required_inputs(self) -> List[str]:
        return ["page_url", "page_body", "diagnostics"]

    @property
    def system_prompt(self) -> str:
        return """You are an advanced holistic SEO agent. You analyse a single page to maximise its business impact, focusing on authority flow and topical hierarchy.

<behavioral_constraints>
You ALWAYS:
- Source inbound links from pages with a HIGHER internal authority score than the target page
- Prefer links from informational (Outer Section) pages to transactional (Core Section) pages
- Drive anchor text from the page's high-impression, low-CTR queries
- Explain in every rationale the authority flow and whether the link is intra- or cross-cluster
</behavioral_constraints>"""

    def build_prompt(
        self,
        page_url: str,
        page_body: str,
        diagnostics,
        search_rows=None,
        strategic_context=None,
        clusters=None,
        **_,
    ) -> str:
        page_info = next((d for d in diagnostics if d.url == page_url), None)
        title = page_info.title if page_info else page_url
        score = page_info.score if page_info else 0.0

        page_rows = rows_for_page(search_rows, page_url)
        opportunities = opportunity_queries(page_rows)

        if strategic_context and clusters:
            context_part = (
                "STRATEGIC CONTEXT:\n"
                f'- Site objective (source context): "{strategic_context.source_context}"\n'
                "- Thematic clusters: " + ", ".join(f'"{c.cluster_name}"' for c in clusters)
            )
        else:
            context_part = "No strategic context provided. Perform a generic SEO analysis."

        page_map = "\n".join(
            f'- "{d.title}" (URL: {d.url}, Authority: {d.score:.1f}/10)' for d in diagnostics
        )
        query_lines = "\n".join(
            f'"{r.query}" (Imp: {r.impressions}, CTR: {r.ctr * 100:.2f}%)' for r in page_rows
        ) or "No search data available."
        opportunity_lines = "\n".join(
            f'"{r.query}" (Imp: {r.impressions}, CTR: {r.ctr * 100:.2f}%)' for r in opportunities
        ) or "None."

        return f"""Perform a surgical analysis of one web page.

{context_part}

TARGET PAGE:
- URL: {page_url}
- Title: "{title}"
- Internal authority score: {score:.2f}/10
- Content (excerpt): \"\"\"
{page_body[:MAX_BODY_CHARS]}
\"\"\"

SITE CONTEXT:
- All pages with their authority:
{page_map}
- Search queries for the target page (first {MAX_PAGE_ROWS}):
{query_lines}
- Opportunity queries (impressions > {OPPORTUNITY_MIN_IMPRESSIONS}, CTR < {OPPORTUNITY_MAX_CTR:.0%}):
{opportunity_lines}

ANALYSIS IN 4 STEPS:
1. STRATEGIC ROLE: is the page a Core Section (transactional, service, product) or an Outer Section (informational, blog, support)? Summarise in 'page_strategic_role_summary'.
2. ACTION PLAN: 'executive_summary' paragraph plus a 'strategic_checklist' of 3-4 prioritised actions.
3. LINKS: 3-5 high-value 'inbound_links' from stronger pages (cross-cluster links from adjacent clusters are especially valuable) and 2-3 'outbound_links'.
4. CONTENT: 2-3 specific 'content_enhancements' aimed at the opportunity queries, and the 5 best 'opportunity_queries'.

Set 'analyzed_url' to {page_url} and 'authority_score' to {score:.2f}.
"""

    def postprocess(self, result: DeepAnalysisReport, diagnostics=None, **inputs) -> DeepAnalysisReport:
        scores = {d.url: d.score for d in diagnostics or []}
        backfilled = []
        for link in result.inbound_links:
            if not link.source_authority_score:
                link = link.model_copy(update={"source_authority_score": scores.get(link.source_url, 0.0)})
            backfilled.append(link)
        return result.model_copy(update={"inbound_links": backfilled})
