"""
Phase Output Shapes

Every generation phase declares one of these models as its output. The JSON
schema sent to Claude is derived from the same model, and the response is
validated against it before anything downstream sees it.

Models are strict (no type coercion) and ignore unknown keys.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PhaseModel(BaseModel):
    """Base for all structured phase outputs."""
    model_config = ConfigDict(strict=True, extra="ignore")


# ============================================================================
# CLUSTERING
# ============================================================================

class ThematicCluster(PhaseModel):
    cluster_name: str
    cluster_description: str
    pages: List[str]


class ClusteringResult(PhaseModel):
    thematic_clusters: List[ThematicCluster] = Field(min_length=1)


# ============================================================================
# LINK SUGGESTIONS
# ============================================================================

class InsertionHint(PhaseModel):
    block_type: str
    position_hint: str
    reason: str


class SemanticRationale(PhaseModel):
    topic_match: str
    entities_in_common: List[str]
    intent_alignment_comment: str


class CannibalizationDetails(PhaseModel):
    competing_queries: List[str] = Field(default_factory=list)
    remediation_steps: List[str] = Field(default_factory=list)


class RiskChecks(PhaseModel):
    target_status: int
    target_indexable: bool
    canonical_ok: bool
    dup_anchor_in_block: bool
    potential_cannibalization: bool
    cannibalization_details: Optional[CannibalizationDetails] = None


class LinkSuggestion(PhaseModel):
    suggestion_id: str
    source_url: str
    target_url: str
    proposed_anchor: str
    anchor_variants: List[str]
    insertion_hint: InsertionHint
    semantic_rationale: SemanticRationale
    risk_checks: RiskChecks
    score: float


class SuggestionResult(PhaseModel):
    suggestions: List[LinkSuggestion]


# ============================================================================
# CONTENT GAP
# ============================================================================

class ContentGapSuggestion(PhaseModel):
    title: str
    description: str
    relevant_cluster: str
    commercial_opportunity_score: float
    commercial_opportunity_rationale: str
    target_query: Optional[str] = None
    # Filled by keyword enrichment, never by the model
    search_volume: Optional[int] = None
    keyword_difficulty: Optional[int] = None
    search_intent: Optional[str] = None


class ContentGapResult(PhaseModel):
    content_gap_suggestions: List[ContentGapSuggestion]


# ============================================================================
# DEEP PAGE ANALYSIS
# ============================================================================

class ChecklistItem(PhaseModel):
    title: str
    description: str
    priority: str


class ActionPlan(PhaseModel):
    page_strategic_role_summary: str
    executive_summary: str
    strategic_checklist: List[ChecklistItem]


class InboundLink(PhaseModel):
    source_url: str
    proposed_anchor: str
    semantic_rationale: str
    source_authority_score: Optional[float] = None
    driving_query: Optional[str] = None


class OutboundLink(PhaseModel):
    target_url: str
    proposed_anchor: str
    semantic_rationale: str


class ContentEnhancement(PhaseModel):
    suggestion_title: str
    description: str


class OpportunityQuery(PhaseModel):
    query: str
    impressions: float
    ctr: float


class DeepAnalysisReport(PhaseModel):
    analyzed_url: str
    authority_score: float
    action_plan: ActionPlan
    inbound_links: List[InboundLink]
    outbound_links: List[OutboundLink]
    content_enhancements: List[ContentEnhancement]
    opportunity_queries: List[OpportunityQuery]


# ============================================================================
# TOPICAL AUTHORITY
# ============================================================================

class PillarDiscoveryResult(PhaseModel):
    pillars: List[str] = Field(min_length=1)


class PillarPages(PhaseModel):
    pillar_name: str
    pages: List[str]


class ContentMapResult(PhaseModel):
    mapped_content: List[PillarPages]


class ArticleSuggestion(PhaseModel):
    title: str
    target_queries: List[str]
    section_type: Literal["Core", "Outer"]
    unique_angle: str


class ClusterSuggestion(PhaseModel):
    cluster_name: str
    strategic_rationale: str
    impact_score: float
    impact_rationale: str
    article_suggestions: List[ArticleSuggestion]


class PillarGapResult(PhaseModel):
    strategic_summary: str
    cluster_suggestions: List[ClusterSuggestion]


class PillarRoadmap(PhaseModel):
    pillar_name: str
    strategic_summary: str
    cluster_suggestions: List[ClusterSuggestion]
    existing_pages: List[str] = Field(default_factory=list)


class BridgeSuggestion(PhaseModel):
    title: str
    description: str
    connecting_pillars: List[str]
    target_queries: List[str]


class BridgeResult(PhaseModel):
    bridge_suggestions: List[BridgeSuggestion]


class PillarFailure(PhaseModel):
    pillar_name: str
    error: str


class TopicalAuthorityRoadmap(PhaseModel):
    pillar_roadmaps: List[PillarRoadmap]
    bridge_suggestions: List[BridgeSuggestion] = Field(default_factory=list)
    pillar_failures: List[PillarFailure] = Field(default_factory=list)


# ============================================================================
# CONTENT GENERATION / PROGRESS
# ============================================================================

class GeneratedSection(PhaseModel):
    generated_html: str

    @field_validator("generated_html")
    @classmethod
    def starts_with_heading(cls, value: str) -> str:
        value = value.strip()
        if not value.lower().startswith("<h3"):
            raise ValueError("generated_html must start with an <h3> heading")
        return value


class ProgressSummary(PhaseModel):
    ai_summary: str
