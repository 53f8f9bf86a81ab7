"""
Content Generation Phase (Semantic Copywriter)

Writes one new HTML section (150-250 words, <h3> heading first) for an
existing page, weaving in its opportunity queries.
"""

from typing import List, Type

from .base import BasePhase
from .schemas import GeneratedSection, PhaseModel

MAX_BODY_CHARS = 5000


class ContentGenerationPhase(BasePhase):

    @property
    def name(self) -> str:
        return "content_generation"

    @property
    def display_name(self) -> str:
        return "Semantic Copywriter"

    @property
    def output_model(self) -> Type[PhaseModel]:
        return GeneratedSection

    @property
    def required_inputs(self) -> List[str]:
        return ["enhancement_title", "page_body"]

    @property
    def system_prompt(self) -> str:
        return (
            "You are a semantic SEO copywriter. You write natural, persuasive, search-optimised "
            "content ready to paste into a CMS."
        )

    def build_prompt(self, enhancement_title: str, page_body: str, opportunity_queries=None, **_) -> str:
        queries = ", ".join(f'"{q.query}"' for q in opportunity_queries or []) or "None provided."
        return f"""Write a new section of text for an existing web page.

CONTENT INSTRUCTION: "{enhancement_title}"

CONTEXT:
- Opportunity queries (high impressions, low CTR) to integrate NATURALLY: {queries}
- Existing page content (for tone of voice and context):
\"\"\"
{page_body[:MAX_BODY_CHARS]}
\"\"\"

RULES:
1. The output MUST start with a relevant, SEO-friendly <h3> heading inspired by the content instruction.
2. Write in a human, clear and engaging way. No keyword stuffing.
3. 150-250 words, heading excluded.
4. Integrate the opportunity queries and related concepts fluently.
5. Clean HTML: <p>, <strong> and, where appropriate, <ul>/<li>. No <html> or <body> tags.
6. Only write the new content. Do not summarise or comment on the existing content.
"""
