"""
Geographic Replication Phase

Re-localises every text field of an existing topical authority roadmap to a
new location. Scores, section types and the shape of the roadmap must come
back unchanged; any structural drift is rejected.
"""

import json
import logging
from typing import List, Type

from ..analyzer.client import SchemaValidationError
from .base import BasePhase
from .schemas import PhaseModel, TopicalAuthorityRoadmap

logger = logging.getLogger(__name__)


def structural_signature(roadmap: TopicalAuthorityRoadmap):
    """Everything replication is not allowed to change."""
    return (
        len(roadmap.bridge_suggestions),
        [
            [
                (cluster.impact_score, [a.section_type for a in cluster.article_suggestions])
                for cluster in pillar.cluster_suggestions
            ]
            for pillar in roadmap.pillar_roadmaps
        ],
    )


class ReplicationPhase(BasePhase):
    """Fatal: there is nothing to return without the replicated roadmap."""

    @property
    def name(self) -> str:
        return "geographic_replication"

    @property
    def display_name(self) -> str:
        return "Geographic Replication"

    @property
    def output_model(self) -> Type[PhaseModel]:
        return TopicalAuthorityRoadmap

    @property
    def required_inputs(self) -> List[str]:
        return ["roadmap", "new_location"]

    @property
    def system_prompt(self) -> str:
        return "You are a geographic replication agent specialised in local SEO strategy."

    def build_prompt(self, roadmap: TopicalAuthorityRoadmap, new_location: str, **_) -> str:
        existing = json.dumps(
            roadmap.model_dump(exclude={"pillar_failures"}), indent=2, ensure_ascii=False
        )
        return f"""Adapt a strategic content roadmap built for one location to a NEW location.

NEW TARGET LOCATION: "{new_location}"

EXISTING ROADMAP (JSON):
{existing}

INSTRUCTIONS:
1. SMART REPLACEMENT: not a plain find-and-replace. Infer the old location from the roadmap and replace it with "{new_location}" in every relevant field: title, strategic_summary, strategic_rationale, target_queries, unique_angle, description.
2. CONTEXTUAL ADAPTATION: adapt regional references tied to the old location to the new region.
3. KEEP THE STRUCTURE: the data structure, every 'impact_score', every 'section_type' and the strategic logic stay IDENTICAL. Return the whole structure with only the text adapted.
4. Return exactly the same format as the existing roadmap.
"""

    def postprocess(self, result: TopicalAuthorityRoadmap, roadmap=None, **inputs) -> TopicalAuthorityRoadmap:
        if roadmap is not None:
            if structural_signature(result) != structural_signature(roadmap):
                raise SchemaValidationError(
                    "Replicated roadmap changed scores, section types or structure"
                )
            result = result.model_copy(update={"pillar_failures": roadmap.pillar_failures})
        return result
