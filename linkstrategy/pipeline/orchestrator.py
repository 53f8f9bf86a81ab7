"""
Generation Pipeline Orchestrator

Run entry points, each driving one PipelineRun and reporting through a
ProgressEmitter:

- run_analysis: collection, link graph, authority, opportunity, clustering,
  link suggestions and optional content-gap enrichment -> Report
- run_content_strategy: content gaps with per-keyword market data
- run_deep_analysis: action plan for one page
- run_topical_authority: pillars -> content map -> per-pillar roadmaps
  (concurrent, isolated) -> bridge articles (best effort)
- run_geographic_replication: re-localised roadmap
- run_content_generation: one HTML section for a page
- run_progress_analysis: key wins between two search-data snapshots

With an emitter, every outcome becomes exactly one terminal event and
nothing is raised. Without one, failures are raised to the caller.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from pydantic import ValidationError

from ..analyzer.client import ClaudeClient
from ..analyzer.retry import RetryPolicy
from ..collector.models import Page
from ..collector.sitemap import SitemapCollector
from ..collector.wordpress import CollectorError, WordPressCollector
from ..graph.authority import AuthorityScore, calculate_internal_authority
from ..graph.links import build_link_graph
from ..integrations.dataforseo import build_metrics_client
from ..phases import (
    BridgePhase,
    ClusteringPhase,
    ContentGapPhase,
    ContentGenerationPhase,
    ContentMappingPhase,
    DeepAnalysisPhase,
    PillarDiscoveryPhase,
    PillarGapPhase,
    ProgressSummaryPhase,
    ReplicationPhase,
    StrategicContext,
    Strategy,
    SuggestionPhase,
    FALLBACK_SUMMARY,
)
from ..phases.schemas import (
    ContentGapSuggestion,
    OpportunityQuery,
    PillarFailure,
    PillarRoadmap,
    ThematicCluster,
    TopicalAuthorityRoadmap,
)
from ..scoring.opportunity import calculate_opportunity_hub
from ..scoring.progress import find_key_wins
from ..scoring.rows import BehaviorRow, SearchRow, parse_behavior_rows, parse_search_rows
from ..utils.config import Settings, get_settings
from .errors import InputValidationError, PhaseFailedError
from .events import ProgressEmitter
from .report import ProgressReport, Report
from .runner import PipelineRun

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10


# ============================================================================
# INPUT VALIDATION
# ============================================================================

def validate_site_root(site_root: Optional[str]) -> str:
    if not site_root or not site_root.strip():
        raise InputValidationError("site_root is required")
    site_root = site_root.strip()
    candidate = site_root if "//" in site_root else f"https://{site_root}"
    parsed = urlparse(candidate)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InputValidationError(f"site_root is not a valid http(s) URL: {site_root}")
    return candidate


def parse_strategy(strategy: Any) -> Strategy:
    try:
        return Strategy(strategy or Strategy.GLOBAL)
    except ValueError:
        raise InputValidationError(
            f"Unknown strategy '{strategy}', expected one of: "
            + ", ".join(s.value for s in Strategy)
        )


def validate_search_rows(rows: Optional[Sequence[Any]], field: str = "search_data") -> List[SearchRow]:
    try:
        return parse_search_rows(rows)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise InputValidationError(f"Invalid {field}: {e}")


def validate_behavior_rows(rows: Optional[Sequence[Any]], field: str = "behavior_data") -> List[BehaviorRow]:
    try:
        return parse_behavior_rows(rows)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise InputValidationError(f"Invalid {field}: {e}")


def parse_clusters(clusters: Optional[Sequence[Any]]) -> List[ThematicCluster]:
    if not clusters:
        raise InputValidationError("thematic_clusters are required")
    try:
        return [c if isinstance(c, ThematicCluster) else ThematicCluster.model_validate(c) for c in clusters]
    except ValidationError as e:
        raise InputValidationError(f"Invalid thematic_clusters: {e}")


def parse_diagnostics(diagnostics: Optional[Sequence[Any]]) -> List[AuthorityScore]:
    if not diagnostics:
        raise InputValidationError("page_diagnostics are required")
    try:
        return [d if isinstance(d, AuthorityScore) else AuthorityScore.from_diagnostic(d) for d in diagnostics]
    except (KeyError, TypeError, ValueError) as e:
        raise InputValidationError(f"Invalid page_diagnostics: {e}")


def parse_strategic_context(context: Any, required: bool = False) -> Optional[StrategicContext]:
    if context is not None and not isinstance(context, StrategicContext):
        context = StrategicContext.from_dict(context)
    if required and (context is None or not context.is_complete):
        raise InputValidationError("strategic_context with source_context and central_intent is required")
    return context


def parse_roadmap(roadmap: Any) -> TopicalAuthorityRoadmap:
    if isinstance(roadmap, TopicalAuthorityRoadmap):
        return roadmap
    if not roadmap:
        raise InputValidationError("existing roadmap is required")
    try:
        return TopicalAuthorityRoadmap.model_validate_json(json.dumps(roadmap))
    except (ValidationError, TypeError) as e:
        raise InputValidationError(f"Invalid roadmap: {e}")


# ============================================================================
# COLLABORATORS
# ============================================================================

def _client(client, settings: Settings):
    return client if client is not None else ClaudeClient.from_settings(settings)


def _policy(policy: Optional[RetryPolicy], settings: Settings) -> RetryPolicy:
    return policy if policy is not None else RetryPolicy.from_settings(settings)


async def collect_pages(
    site_root: str,
    emitter: ProgressEmitter,
    collector=None,
    settings: Optional[Settings] = None,
) -> List[Page]:
    """
    Collect published pages with the given collector, or with the WordPress
    REST API falling back to the sitemap.
    """
    if collector is not None:
        return await collector.list_published_pages(site_root, emitter.progress)

    settings = settings or get_settings()
    async with WordPressCollector(
        timeout=settings.COLLECTOR_TIMEOUT, max_pages=settings.COLLECTOR_MAX_PAGES
    ) as wordpress:
        try:
            return await wordpress.list_published_pages(site_root, emitter.progress)
        except CollectorError as e:
            logger.warning(f"WordPress REST API unavailable for {site_root}: {e}")
            emitter.progress("WordPress REST API not available, falling back to the sitemap...")

    async with SitemapCollector(
        timeout=settings.COLLECTOR_TIMEOUT, max_pages=settings.COLLECTOR_MAX_PAGES
    ) as sitemap:
        return await sitemap.list_published_pages(site_root, emitter.progress)


async def fetch_page_body(url: str, collector=None, settings: Optional[Settings] = None) -> str:
    if collector is not None:
        return await collector.get_page_body(url)

    settings = settings or get_settings()
    async with WordPressCollector(timeout=settings.COLLECTOR_TIMEOUT) as wordpress:
        try:
            return await wordpress.get_page_body(url)
        except CollectorError as e:
            logger.warning(f"WordPress lookup failed for {url}, fetching the page directly: {e}")
    async with SitemapCollector(timeout=settings.COLLECTOR_TIMEOUT) as sitemap:
        return await sitemap.get_page_body(url)


async def enrich_content_gaps(
    suggestions: List[ContentGapSuggestion],
    metrics_client,
    run: PipelineRun,
) -> List[ContentGapSuggestion]:
    """Attach keyword market data one item at a time; a failed lookup only skips that item."""
    if metrics_client is None or not suggestions:
        return suggestions

    run.emitter.progress("Enriching suggestions with keyword market data...")
    enriched = []
    for index, suggestion in enumerate(suggestions):
        if not suggestion.target_query:
            enriched.append(suggestion)
            continue

        run.emitter.progress(
            f'Fetching data for "{suggestion.target_query}" ({index + 1}/{len(suggestions)})'
        )
        try:
            metrics = await metrics_client.lookup_keyword(suggestion.target_query)
        except Exception as e:
            run.record_failure("keyword_enrichment", e, item=suggestion.target_query)
            enriched.append(suggestion)
            continue

        enriched.append(suggestion.model_copy(update={
            "search_volume": metrics.volume,
            "keyword_difficulty": metrics.difficulty,
            "search_intent": metrics.intent,
        }))
    return enriched


async def _content_gaps(
    run: PipelineRun,
    phase: ContentGapPhase,
    metrics_client,
    settings: Settings,
    fatal: bool,
    **inputs,
) -> List[ContentGapSuggestion]:
    result = await run.run_phase(phase, fatal=fatal, **inputs)
    if result is None:
        return []

    owns_metrics = metrics_client is None
    if owns_metrics:
        metrics_client = build_metrics_client(settings)
    try:
        return await enrich_content_gaps(result.content_gap_suggestions, metrics_client, run)
    finally:
        if owns_metrics and metrics_client is not None:
            await metrics_client.close()


def _finish_with_error(run: PipelineRun, error: Exception, emitter: Optional[ProgressEmitter]) -> None:
    run.fail(error)
    if emitter is None:
        raise error


# ============================================================================
# PRIMARY ANALYSIS
# ============================================================================

async def run_analysis(
    site_root: str,
    emitter: Optional[ProgressEmitter] = None,
    *,
    strategy: Any = Strategy.GLOBAL,
    target_urls: Optional[Sequence[str]] = None,
    search_rows: Optional[Sequence[Any]] = None,
    behavior_rows: Optional[Sequence[Any]] = None,
    search_site_url: Optional[str] = None,
    strategic_context: Any = None,
    include_content_gap: bool = True,
    client=None,
    collector=None,
    metrics_client=None,
    settings: Optional[Settings] = None,
    policy: Optional[RetryPolicy] = None,
) -> Optional[Report]:
    """
    Run the full authority & opportunity analysis for a site.

    Returns:
        The Report, or None when the run failed (the error event carries why)
    """
    events = emitter or ProgressEmitter()
    run = PipelineRun(events, policy)

    try:
        site_root = validate_site_root(site_root)
        strategy = parse_strategy(strategy)
        search_rows = validate_search_rows(search_rows)
        behavior_rows = validate_behavior_rows(behavior_rows)
        strategic_context = parse_strategic_context(strategic_context)
        settings = settings or get_settings()

        run.policy = _policy(policy, settings)
        run.start("Starting strategic analysis...")
        claude = _client(client, settings)

        # Phase 0: authority and opportunity
        run.current_phase = "collection"
        events.progress("Phase 0: Scanning the site and computing authority...")
        pages = await collect_pages(site_root, events, collector, settings)
        if not pages:
            raise CollectorError(f"No published pages found for {site_root}")
        events.progress(f"Retrieved {len(pages)} pages. Analysing internal links...")

        def on_links(processed: int, total: int) -> None:
            if processed % PROGRESS_EVERY == 0 or processed == total:
                events.progress(f"Internal link analysis: {processed} / {total} pages...")

        run.current_phase = "link_graph"
        adjacency = build_link_graph(pages, site_root, on_links)

        run.current_phase = "authority"
        events.progress("Computing internal authority scores...")
        authority = calculate_internal_authority(
            adjacency,
            pages,
            lambda current, total: events.progress(
                f"Computing internal authority (iteration {current}/{total})..."
            ),
        )

        run.current_phase = "opportunity"
        events.progress("Computing growth opportunities...")
        opportunity_hub = calculate_opportunity_hub(
            search_rows, {a.url: a.title for a in authority}
        )

        clustering = await run.run_phase(
            ClusteringPhase(claude, run.policy), site_root=site_root, pages=pages
        )
        clusters = clustering.thematic_clusters

        suggestions = await run.run_phase(
            SuggestionPhase(claude, run.policy),
            site_root=site_root,
            pages=pages,
            clusters=clusters,
            authority=authority,
            strategy=strategy,
            target_urls=target_urls,
            search_rows=search_rows,
            behavior_rows=behavior_rows,
        )

        content_gaps: List[ContentGapSuggestion] = []
        if include_content_gap:
            content_gaps = await _content_gaps(
                run,
                ContentGapPhase(claude, run.policy),
                metrics_client,
                settings,
                fatal=False,
                site_root=site_root,
                clusters=clusters,
                search_rows=search_rows,
                behavior_rows=behavior_rows,
                strategic_context=strategic_context,
            )

        events.progress("Finalising the strategic report...")
        report = Report(
            site=site_root,
            pages_scanned=len(pages),
            thematic_clusters=clusters,
            suggestions=suggestions.suggestions,
            page_diagnostics=authority,
            opportunity_hub=opportunity_hub,
            internal_links_map=adjacency,
            content_gap_suggestions=content_gaps,
            search_site_url=search_site_url,
            search_data=search_rows,
            behavior_data=behavior_rows,
            phase_failures=list(run.failures),
        )
        run.complete(report.to_dict())
        return report

    except Exception as e:
        _finish_with_error(run, e, emitter)
        return None


# ============================================================================
# CONTENT STRATEGY
# ============================================================================

async def run_content_strategy(
    site_root: str,
    thematic_clusters: Sequence[Any],
    emitter: Optional[ProgressEmitter] = None,
    *,
    search_rows: Optional[Sequence[Any]] = None,
    behavior_rows: Optional[Sequence[Any]] = None,
    strategic_context: Any = None,
    client=None,
    metrics_client=None,
    settings: Optional[Settings] = None,
    policy: Optional[RetryPolicy] = None,
) -> Optional[List[ContentGapSuggestion]]:
    """Content-gap suggestions enriched with keyword market data."""
    events = emitter or ProgressEmitter()
    run = PipelineRun(events, policy)

    try:
        site_root = validate_site_root(site_root)
        clusters = parse_clusters(thematic_clusters)
        settings = settings or get_settings()
        run.policy = _policy(policy, settings)
        run.start("Content Strategist is analysing the data...")

        suggestions = await _content_gaps(
            run,
            ContentGapPhase(_client(client, settings), run.policy),
            metrics_client,
            settings,
            fatal=True,
            site_root=site_root,
            clusters=clusters,
            search_rows=validate_search_rows(search_rows),
            behavior_rows=validate_behavior_rows(behavior_rows),
            strategic_context=parse_strategic_context(strategic_context),
        )
        run.complete({
            "content_gap_suggestions": [s.model_dump() for s in suggestions],
            "phase_failures": [f.to_dict() for f in run.failures],
        })
        return suggestions

    except Exception as e:
        _finish_with_error(run, e, emitter)
        return None


# ============================================================================
# DEEP PAGE ANALYSIS
# ============================================================================

async def run_deep_analysis(
    page_url: str,
    page_diagnostics: Sequence[Any],
    emitter: Optional[ProgressEmitter] = None,
    *,
    search_rows: Optional[Sequence[Any]] = None,
    strategic_context: Any = None,
    thematic_clusters: Optional[Sequence[Any]] = None,
    client=None,
    collector=None,
    settings: Optional[Settings] = None,
    policy: Optional[RetryPolicy] = None,
):
    """Authority-aware action plan for one page."""
    events = emitter or ProgressEmitter()
    run = PipelineRun(events, policy)

    try:
        if not page_url or not page_url.strip():
            raise InputValidationError("page_url is required")
        diagnostics = parse_diagnostics(page_diagnostics)
        clusters = parse_clusters(thematic_clusters) if thematic_clusters else None
        settings = settings or get_settings()
        run.policy = _policy(policy, settings)
        run.start(f"Deep analysis of {page_url}...")

        run.current_phase = "collection"
        events.progress("Fetching page content...")
        page_body = await fetch_page_body(page_url, collector, settings)

        report = await run.run_phase(
            DeepAnalysisPhase(_client(client, settings), run.policy),
            page_url=page_url,
            page_body=page_body,
            diagnostics=diagnostics,
            search_rows=validate_search_rows(search_rows),
            strategic_context=parse_strategic_context(strategic_context),
            clusters=clusters,
        )
        run.complete(report.model_dump())
        return report

    except Exception as e:
        _finish_with_error(run, e, emitter)
        return None


# ============================================================================
# TOPICAL AUTHORITY
# ============================================================================

async def run_topical_authority(
    site_root: str,
    thematic_clusters: Sequence[Any],
    page_diagnostics: Sequence[Any],
    strategic_context: Any,
    emitter: Optional[ProgressEmitter] = None,
    *,
    client=None,
    settings: Optional[Settings] = None,
    policy: Optional[RetryPolicy] = None,
) -> Optional[TopicalAuthorityRoadmap]:
    """
    Four-stage topical authority roadmap.

    One pillar's failure is recorded in pillar_failures without affecting the
    others; the bridge stage is omitted on failure. The run only fails when
    pillar discovery or content mapping fails, or when no pillar succeeds.
    """
    events = emitter or ProgressEmitter()
    run = PipelineRun(events, policy)

    try:
        site_root = validate_site_root(site_root)
        clusters = parse_clusters(thematic_clusters)
        diagnostics = parse_diagnostics(page_diagnostics)
        context = parse_strategic_context(strategic_context, required=True)
        settings = settings or get_settings()
        run.policy = _policy(policy, settings)
        claude = _client(client, settings)
        run.start("Building the topical authority roadmap...")

        discovery = await run.run_phase(
            PillarDiscoveryPhase(claude, run.policy),
            site_root=site_root,
            clusters=clusters,
            diagnostics=diagnostics,
            strategic_context=context,
        )
        pillars = discovery.pillars
        events.progress(f"Strategic pillars identified: {', '.join(pillars)}")

        content_map = await run.run_phase(
            ContentMappingPhase(claude, run.policy), pillars=pillars, diagnostics=diagnostics
        )
        pages_by_pillar = {entry.pillar_name: entry.pages for entry in content_map.mapped_content}

        results = await run.run_isolated(
            PillarGapPhase(claude, run.policy),
            [
                (pillar, {
                    "site_root": site_root,
                    "pillar": pillar,
                    "strategic_context": context,
                    "existing_pages": pages_by_pillar.get(pillar, []),
                })
                for pillar in pillars
            ],
        )

        roadmaps = []
        failures = []
        for pillar, result in results:
            if result is None:
                error = next(
                    (f.error for f in run.failures if f.phase == "pillar_gap_analysis" and f.item == pillar),
                    "unknown error",
                )
                failures.append(PillarFailure(pillar_name=pillar, error=error))
                continue
            roadmaps.append(PillarRoadmap(
                pillar_name=pillar,
                strategic_summary=result.strategic_summary,
                cluster_suggestions=result.cluster_suggestions,
                existing_pages=pages_by_pillar.get(pillar, []),
            ))

        if not roadmaps:
            raise PhaseFailedError("pillar_gap_analysis", "Roadmap generation failed for every pillar")

        events.progress("Bridge Builder is looking for connections between pillars...")
        bridges = await run.run_phase(
            BridgePhase(claude, run.policy), pillars=pillars, strategic_context=context
        )

        roadmap = TopicalAuthorityRoadmap(
            pillar_roadmaps=roadmaps,
            bridge_suggestions=bridges.bridge_suggestions if bridges else [],
            pillar_failures=failures,
        )
        run.complete(roadmap.model_dump())
        return roadmap

    except Exception as e:
        _finish_with_error(run, e, emitter)
        return None


async def run_geographic_replication(
    roadmap: Any,
    new_location: str,
    emitter: Optional[ProgressEmitter] = None,
    *,
    client=None,
    settings: Optional[Settings] = None,
    policy: Optional[RetryPolicy] = None,
) -> Optional[TopicalAuthorityRoadmap]:
    """Re-localise an existing roadmap to a new location."""
    events = emitter or ProgressEmitter()
    run = PipelineRun(events, policy)

    try:
        existing = parse_roadmap(roadmap)
        if not new_location or not new_location.strip():
            raise InputValidationError("new_location is required")
        settings = settings or get_settings()
        run.policy = _policy(policy, settings)
        run.start(f'Adapting the roadmap for "{new_location}"...')

        replicated = await run.run_phase(
            ReplicationPhase(_client(client, settings), run.policy),
            roadmap=existing,
            new_location=new_location.strip(),
        )
        events.progress("Finalising the new roadmap...")
        run.complete(replicated.model_dump())
        return replicated

    except Exception as e:
        _finish_with_error(run, e, emitter)
        return None


# ============================================================================
# CONTENT GENERATION / PROGRESS
# ============================================================================

async def run_content_generation(
    enhancement_title: str,
    emitter: Optional[ProgressEmitter] = None,
    *,
    page_body: Optional[str] = None,
    page_url: Optional[str] = None,
    opportunity_queries: Optional[Sequence[Any]] = None,
    client=None,
    collector=None,
    settings: Optional[Settings] = None,
    policy: Optional[RetryPolicy] = None,
) -> Optional[str]:
    """Generate one HTML section for an existing page."""
    events = emitter or ProgressEmitter()
    run = PipelineRun(events, policy)

    try:
        if not enhancement_title or not enhancement_title.strip():
            raise InputValidationError("enhancement_title is required")
        if not page_body and not page_url:
            raise InputValidationError("page_body or page_url is required")
        try:
            queries = [
                q if isinstance(q, OpportunityQuery) else OpportunityQuery.model_validate_json(json.dumps(q))
                for q in opportunity_queries or []
            ]
        except (ValidationError, TypeError) as e:
            raise InputValidationError(f"Invalid opportunity_queries: {e}")

        settings = settings or get_settings()
        run.policy = _policy(policy, settings)
        run.start("Semantic Copywriter is drafting the section...")

        if not page_body:
            run.current_phase = "collection"
            page_body = await fetch_page_body(page_url, collector, settings)

        section = await run.run_phase(
            ContentGenerationPhase(_client(client, settings), run.policy),
            enhancement_title=enhancement_title,
            page_body=page_body,
            opportunity_queries=queries,
        )
        run.complete(section.model_dump())
        return section.generated_html

    except Exception as e:
        _finish_with_error(run, e, emitter)
        return None


async def run_progress_analysis(
    previous_report: Dict[str, Any],
    current_rows: Sequence[Any],
    emitter: Optional[ProgressEmitter] = None,
    *,
    client=None,
    settings: Optional[Settings] = None,
    policy: Optional[RetryPolicy] = None,
) -> Optional[ProgressReport]:
    """Compare a previous report's search data with fresh rows."""
    events = emitter or ProgressEmitter()
    run = PipelineRun(events, policy)

    try:
        if not previous_report or not previous_report.get("site"):
            raise InputValidationError("previous_report with a site is required")
        if not current_rows:
            raise InputValidationError("current search rows are required")
        previous_rows = validate_search_rows(previous_report.get("search_data") or [], "previous_report.search_data")
        current = validate_search_rows(current_rows, "current search rows")
        settings = settings or get_settings()
        run.policy = _policy(policy, settings)
        run.start("Comparing search performance between periods...")

        run.current_phase = "comparison"
        key_wins = find_key_wins(previous_rows, current)
        events.progress(f"Found {len(key_wins)} key wins")

        previous_date = previous_report.get("generated_at", "")
        summary = await run.run_phase(
            ProgressSummaryPhase(_client(client, settings), run.policy),
            site=previous_report["site"],
            previous_date=previous_date,
            key_wins=key_wins,
        )

        progress = ProgressReport(
            site=previous_report["site"],
            previous_report_date=previous_date,
            key_wins=key_wins,
            ai_summary=summary.ai_summary if summary else FALLBACK_SUMMARY,
        )
        run.complete(progress.to_dict())
        return progress

    except Exception as e:
        _finish_with_error(run, e, emitter)
        return None
