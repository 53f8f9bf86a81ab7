"""
Clustering Phase (Information Architect)

Groups every collected page into 4-7 thematic clusters.
"""

from typing import List, Type

from .base import BasePhase
from .schemas import ClusteringResult, PhaseModel


class ClusteringPhase(BasePhase):
    """Groups pages into thematic clusters. Fatal: suggestions depend on it."""

    MIN_CLUSTERS = 4
    MAX_CLUSTERS = 7

    @property
    def name(self) -> str:
        return "clustering"

    @property
    def display_name(self) -> str:
        return "Information Architect"

    @property
    def output_model(self) -> Type[PhaseModel]:
        return ClusteringResult

    @property
    def required_inputs(self) -> List[str]:
        return ["site_root", "pages"]

    @property
    def system_prompt(self) -> str:
        return (
            "You are a world-class Information Architect and SEO strategist. "
            "You organise websites into coherent thematic clusters that reflect "
            "what the content is about, not how the CMS stores it."
        )

    def build_prompt(self, site_root: str, pages, **_) -> str:
        page_list = "\n".join(f'"{p.title}": {p.url}' for p in pages)
        return f"""Analyse the following pages of a website and group them into coherent thematic clusters.
For each cluster give a concise name and a short description (1-2 sentences) of its purpose.

SITE: {site_root}

PAGES (TITLE: URL):
{page_list}

INSTRUCTIONS:
1. Create between {self.MIN_CLUSTERS} and {self.MAX_CLUSTERS} main clusters. Do not be too granular.
2. Every page belongs to exactly one cluster. List pages by their exact URL.
3. Cluster names must be meaningful and describe the content (e.g. "Web Development Services", "Content Marketing & Blog", "Company Resources").
4. Descriptions explain the purpose of the cluster and the kind of content it groups.
"""
