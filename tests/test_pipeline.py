"""
End-to-end tests for the pipeline entry points with scripted collaborators.
"""

import pytest

from linkstrategy.analyzer import GenerationError
from linkstrategy.collector.models import Page
from linkstrategy.integrations import KeywordMetrics
from linkstrategy.phases import FALLBACK_SUMMARY
from linkstrategy.pipeline import (
    EventType,
    InputValidationError,
    PhaseFailedError,
    ProgressEmitter,
    run_analysis,
    run_content_generation,
    run_content_strategy,
    run_deep_analysis,
    run_progress_analysis,
)

from fakes import CLUSTERS, SITE, FakeCollector, FakeMetricsClient, Script, ScriptedClient


def terminal_events(events):
    return [e for e in events if e.type != EventType.PROGRESS]


def messages(events):
    return [e.message for e in events if e.type == EventType.PROGRESS]


# ============================================================================
# Primary Analysis
# ============================================================================

class TestRunAnalysis:
    """Test the primary analysis run."""

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_full_run(self, emitter, events, collector, analysis_responses, settings, policy):
        """Should emit progress, then exactly one done event with the report."""
        client = ScriptedClient(analysis_responses)
        search_rows = [
            {"query": "web design rome", "page": f"{SITE}/services/", "impressions": 1000, "ctr": 0.01},
            {"query": "agency", "page": f"{SITE}/", "impressions": 150, "ctr": 0.5},
            {"query": "noise", "page": f"{SITE}/about/", "impressions": 20, "ctr": 0.0},
        ]
        metrics = FakeMetricsClient({"web design cost": KeywordMetrics("web design cost", 880, 35, "commercial")})

        report = await run_analysis(
            SITE,
            emitter,
            search_rows=search_rows,
            search_site_url="sc-domain:example.com",
            client=client,
            collector=collector,
            metrics_client=metrics,
            settings=settings,
            policy=policy,
        )

        assert report is not None
        assert [e.type for e in terminal_events(events)] == [EventType.DONE]
        assert events[-1].type == EventType.DONE
        assert events[0].message == "Starting strategic analysis..."

        payload = events[-1].payload
        assert payload["site"] == SITE
        assert payload["search_site_url"] == "sc-domain:example.com"
        assert payload["summary"] == {
            "pages_scanned": 5,
            "indexable_pages": 5,
            "suggestions_total": 2,
            "high_priority": 1,
        }
        assert [o["url"] for o in payload["opportunity_hub"]] == [f"{SITE}/services/", f"{SITE}/"]
        assert payload["opportunity_hub"][0]["title"] == "Services"
        assert payload["internal_links_map"][f"{SITE}/services/"] == [f"{SITE}/contact/"]
        assert len(payload["page_diagnostics"]) == 5
        assert payload["phase_failures"] == []

        gaps = payload["content_gap_suggestions"]
        assert gaps[0]["search_volume"] == 880
        assert gaps[0]["keyword_difficulty"] == 35
        assert gaps[0]["search_intent"] == "commercial"
        assert gaps[1]["search_volume"] is None
        assert metrics.lookups == ["web design cost"]

        assert [c["phase"] for c in client.calls] == ["clustering", "link_suggestions", "content_gap"]

    @pytest.mark.asyncio
    async def test_link_progress_every_ten_pages(self, emitter, events, analysis_responses, settings, policy):
        pages = FakeCollector([Page(url=f"{SITE}/p{i}/", title=f"P{i}", body="") for i in range(25)])

        await run_analysis(
            SITE, emitter, client=ScriptedClient(analysis_responses), collector=pages,
            include_content_gap=False, settings=settings, policy=policy,
        )

        link_messages = [m for m in messages(events) if m.startswith("Internal link analysis")]
        assert link_messages == [
            "Internal link analysis: 10 / 25 pages...",
            "Internal link analysis: 20 / 25 pages...",
            "Internal link analysis: 25 / 25 pages...",
        ]

    @pytest.mark.asyncio
    async def test_clustering_failure_is_single_error(self, emitter, events, collector, analysis_responses, settings, policy):
        """A fatal phase failure should end the run with one error event."""
        analysis_responses["clustering"] = GenerationError("invalid request", status_code=400)
        client = ScriptedClient(analysis_responses)

        report = await run_analysis(SITE, emitter, client=client, collector=collector, settings=settings, policy=policy)

        assert report is None
        terminal = terminal_events(events)
        assert len(terminal) == 1
        assert terminal[0].type == EventType.ERROR
        assert terminal[0].message == "Phase 'clustering' failed"
        assert "invalid request" in terminal[0].details
        assert client.calls_for("link_suggestions") == []

    @pytest.mark.asyncio
    async def test_transient_exhaustion_fails_after_max_retries(
        self, emitter, events, collector, analysis_responses, settings, policy
    ):
        analysis_responses["link_suggestions"] = GenerationError("overloaded", status_code=529)
        client = ScriptedClient(analysis_responses)

        await run_analysis(SITE, emitter, client=client, collector=collector, settings=settings, policy=policy)

        assert len(client.calls_for("link_suggestions")) == policy.max_retries
        waiting = [m for m in messages(events) if "waiting" in m]
        assert len(waiting) == policy.max_retries - 1
        assert events[-1].type == EventType.ERROR

    @pytest.mark.asyncio
    async def test_transient_recovery(self, emitter, events, collector, analysis_responses, settings, policy):
        analysis_responses["clustering"] = Script(GenerationError("503 unavailable", status_code=503), CLUSTERS)
        client = ScriptedClient(analysis_responses)

        report = await run_analysis(SITE, emitter, client=client, collector=collector, settings=settings, policy=policy)

        assert report is not None
        assert len(client.calls_for("clustering")) == 2
        assert events[-1].type == EventType.DONE

    @pytest.mark.asyncio
    async def test_content_gap_failure_still_completes(
        self, emitter, events, collector, analysis_responses, settings, policy
    ):
        """Optional enrichment failures should be recorded, not fatal."""
        analysis_responses["content_gap"] = GenerationError("invalid request", status_code=400)

        report = await run_analysis(
            SITE, emitter, client=ScriptedClient(analysis_responses), collector=collector,
            settings=settings, policy=policy,
        )

        assert report is not None
        assert report.content_gap_suggestions == []
        payload = events[-1].payload
        assert payload["phase_failures"] == [
            {"phase": "content_gap", "error": "invalid request", "item": None}
        ]

    @pytest.mark.asyncio
    async def test_keyword_lookup_failure_is_isolated(self, emitter, events, collector, analysis_responses, settings, policy):
        analysis_responses["content_gap"] = {"content_gap_suggestions": [
            {**analysis_responses["content_gap"]["content_gap_suggestions"][0], "target_query": "broken"},
            {**analysis_responses["content_gap"]["content_gap_suggestions"][0], "target_query": "fine"},
        ]}
        metrics = FakeMetricsClient({"fine": KeywordMetrics("fine", 100, 10, "informational")}, failing=["broken"])

        report = await run_analysis(
            SITE, emitter, client=ScriptedClient(analysis_responses), collector=collector,
            metrics_client=metrics, settings=settings, policy=policy,
        )

        assert [s.search_volume for s in report.content_gap_suggestions] == [None, 100]
        assert [(f.phase, f.item) for f in report.phase_failures] == [("keyword_enrichment", "broken")]

    @pytest.mark.asyncio
    async def test_content_gap_can_be_skipped(self, emitter, collector, analysis_responses, settings, policy):
        client = ScriptedClient(analysis_responses)

        await run_analysis(
            SITE, emitter, include_content_gap=False, client=client, collector=collector,
            settings=settings, policy=policy,
        )

        assert client.calls_for("content_gap") == []

    @pytest.mark.asyncio
    async def test_pillar_strategy_reaches_prompt(self, emitter, collector, analysis_responses, settings, policy):
        client = ScriptedClient(analysis_responses)

        await run_analysis(
            SITE, emitter, strategy="pillar", target_urls=[f"{SITE}/services/"],
            client=client, collector=collector, settings=settings, policy=policy,
        )

        prompt = client.calls_for("link_suggestions")[0]["prompt"]
        assert "Pillar Page" in prompt
        assert f"URL: {SITE}/about/" not in prompt.split("CANDIDATE PAGES:")[1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("site_root,strategy", [("", "global"), ("ftp://example.com", "global"), (SITE, "random")])
    async def test_invalid_input_fails_before_external_calls(
        self, emitter, events, collector, analysis_responses, settings, policy, site_root, strategy
    ):
        client = ScriptedClient(analysis_responses)

        report = await run_analysis(
            site_root, emitter, strategy=strategy, client=client, collector=collector,
            settings=settings, policy=policy,
        )

        assert report is None
        assert len(events) == 1
        assert events[0].type == EventType.ERROR
        assert events[0].message.startswith("Invalid request")
        assert client.calls == []
        assert collector.list_calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("search_rows,behavior_rows", [
        ([{"query": "q", "page": f"{SITE}/", "impressions": "abc"}], None),
        (["not a row"], None),
        (None, [{"page_path": "/", "sessions": "many"}]),
    ])
    async def test_malformed_rows_are_input_errors(
        self, emitter, events, collector, analysis_responses, settings, policy, search_rows, behavior_rows
    ):
        client = ScriptedClient(analysis_responses)

        report = await run_analysis(
            SITE, emitter, search_rows=search_rows, behavior_rows=behavior_rows,
            client=client, collector=collector, settings=settings, policy=policy,
        )

        assert report is None
        assert [e.type for e in events] == [EventType.ERROR]
        assert events[0].message.startswith("Invalid request")
        assert events[0].details == "InputValidationError"
        assert client.calls == []
        assert collector.list_calls == 0

    @pytest.mark.asyncio
    async def test_malformed_rows_raise_without_emitter(self, collector, analysis_responses, settings, policy):
        with pytest.raises(InputValidationError, match="search_data"):
            await run_analysis(
                SITE, search_rows=[{"query": "q", "page": f"{SITE}/", "impressions": "abc"}],
                client=ScriptedClient(analysis_responses), collector=collector,
                settings=settings, policy=policy,
            )

    @pytest.mark.asyncio
    async def test_site_without_scheme_is_accepted(self, emitter, collector, analysis_responses, settings, policy):
        report = await run_analysis(
            "example.com", emitter, client=ScriptedClient(analysis_responses), collector=collector,
            settings=settings, policy=policy,
        )

        assert report.site == SITE

    @pytest.mark.asyncio
    async def test_empty_site_fails(self, emitter, events, analysis_responses, settings, policy):
        await run_analysis(
            SITE, emitter, client=ScriptedClient(analysis_responses), collector=FakeCollector([]),
            settings=settings, policy=policy,
        )

        assert events[-1].type == EventType.ERROR
        assert events[-1].message == "Content collection failed"

    @pytest.mark.asyncio
    async def test_without_emitter_errors_are_raised(self, collector, analysis_responses, settings, policy):
        analysis_responses["clustering"] = GenerationError("invalid request", status_code=400)

        with pytest.raises(PhaseFailedError):
            await run_analysis(
                SITE, client=ScriptedClient(analysis_responses), collector=collector,
                settings=settings, policy=policy,
            )

    @pytest.mark.asyncio
    async def test_disconnected_consumer_does_not_abort(self, collector, analysis_responses, settings, policy):
        """The run should finish even when the event consumer goes away."""
        def sink(event):
            raise BrokenPipeError("consumer closed")

        report = await run_analysis(
            SITE, ProgressEmitter(sink), client=ScriptedClient(analysis_responses), collector=collector,
            settings=settings, policy=policy,
        )

        assert report is not None


# ============================================================================
# Content Strategy
# ============================================================================

class TestRunContentStrategy:
    """Test the stand-alone content-gap run."""

    @pytest.mark.asyncio
    async def test_enriches_each_item(self, emitter, events, analysis_responses, settings, policy):
        metrics = FakeMetricsClient(failing=["web design cost"])

        suggestions = await run_content_strategy(
            SITE, CLUSTERS["thematic_clusters"], emitter,
            client=ScriptedClient(analysis_responses), metrics_client=metrics,
            settings=settings, policy=policy,
        )

        assert len(suggestions) == 2
        payload = events[-1].payload
        assert payload["phase_failures"][0]["item"] == "web design cost"
        assert payload["content_gap_suggestions"][0]["search_volume"] is None

    @pytest.mark.asyncio
    async def test_without_credentials_skips_enrichment(self, emitter, events, analysis_responses, settings, policy):
        suggestions = await run_content_strategy(
            SITE, CLUSTERS["thematic_clusters"], emitter,
            client=ScriptedClient(analysis_responses), settings=settings, policy=policy,
        )

        assert all(s.search_volume is None for s in suggestions)
        assert events[-1].payload["phase_failures"] == []

    @pytest.mark.asyncio
    async def test_content_gap_failure_is_fatal_here(self, emitter, events, settings, policy):
        client = ScriptedClient({"content_gap": GenerationError("invalid request", status_code=400)})

        await run_content_strategy(SITE, CLUSTERS["thematic_clusters"], emitter, client=client, settings=settings, policy=policy)

        assert events[-1].type == EventType.ERROR
        assert events[-1].message == "Phase 'content_gap' failed"

    @pytest.mark.asyncio
    async def test_requires_clusters(self, settings):
        with pytest.raises(InputValidationError):
            await run_content_strategy(SITE, [], client=ScriptedClient(), settings=settings)


# ============================================================================
# Deep Analysis / Content Generation / Progress
# ============================================================================

DEEP_REPORT = {
    "analyzed_url": f"{SITE}/services/",
    "authority_score": 10.0,
    "action_plan": {
        "page_strategic_role_summary": "Core Section",
        "executive_summary": "Already strong",
        "strategic_checklist": [],
    },
    "inbound_links": [{"source_url": f"{SITE}/", "proposed_anchor": "services", "semantic_rationale": "hub"}],
    "outbound_links": [],
    "content_enhancements": [],
    "opportunity_queries": [],
}


class TestSinglePageRuns:
    """Test deep analysis, content generation and progress comparison."""

    @pytest.mark.asyncio
    async def test_deep_analysis(self, emitter, events, collector, settings, policy):
        diagnostics = [
            {"url": f"{SITE}/", "title": "Home", "internal_authority_score": 4.2},
            {"url": f"{SITE}/services/", "title": "Services", "internal_authority_score": 10.0},
        ]
        client = ScriptedClient({"deep_analysis": DEEP_REPORT})

        report = await run_deep_analysis(
            f"{SITE}/services/", diagnostics, emitter,
            search_rows=[{"query": "web design", "page": f"{SITE}/services/", "impressions": 400, "ctr": 0.01}],
            strategic_context={"source_context": "Agency", "central_intent": "Hire us"},
            thematic_clusters=CLUSTERS["thematic_clusters"],
            client=client, collector=collector, settings=settings, policy=policy,
        )

        assert report.inbound_links[0].source_authority_score == 4.2
        assert events[-1].payload["analyzed_url"] == f"{SITE}/services/"
        prompt = client.calls[0]["prompt"]
        assert "What we do" in prompt
        assert '"web design" (Imp: 400, CTR: 1.00%)' in prompt

    @pytest.mark.asyncio
    async def test_deep_analysis_unknown_page(self, emitter, events, collector, settings, policy):
        await run_deep_analysis(
            f"{SITE}/missing/", [{"url": f"{SITE}/", "title": "Home", "internal_authority_score": 1.0}], emitter,
            client=ScriptedClient({"deep_analysis": DEEP_REPORT}), collector=collector,
            settings=settings, policy=policy,
        )

        assert events[-1].type == EventType.ERROR
        assert events[-1].message == "Content collection failed"

    @pytest.mark.asyncio
    async def test_content_generation_from_url(self, emitter, events, collector, settings, policy):
        client = ScriptedClient({"content_generation": {"generated_html": "<h3>Prices</h3><p>Text</p>"}})

        html = await run_content_generation(
            "Add a pricing section", emitter,
            page_url=f"{SITE}/services/",
            opportunity_queries=[{"query": "web design cost", "impressions": 500, "ctr": 0.01}],
            client=client, collector=collector, settings=settings, policy=policy,
        )

        assert html == "<h3>Prices</h3><p>Text</p>"
        assert events[-1].payload == {"generated_html": html}
        assert '"web design cost"' in client.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_content_generation_requires_body_or_url(self, emitter, events, settings):
        await run_content_generation("Add a section", emitter, client=ScriptedClient(), settings=settings)

        assert events[-1].type == EventType.ERROR
        assert events[-1].message.startswith("Invalid request")

    @pytest.mark.asyncio
    async def test_progress_analysis(self, emitter, events, settings, policy):
        previous = {
            "site": SITE,
            "generated_at": "2026-01-01T00:00:00+00:00",
            "search_data": [{"query": "q", "page": f"{SITE}/a/", "impressions": 200, "ctr": 0.01, "position": 9.0}],
        }
        current = [{"query": "q", "page": f"{SITE}/a/", "impressions": 250, "ctr": 0.05, "position": 4.0}]
        client = ScriptedClient({"progress_summary": {"ai_summary": "Great progress."}})

        progress = await run_progress_analysis(previous, current, emitter, client=client, settings=settings, policy=policy)

        assert progress.ai_summary == "Great progress."
        payload = events[-1].payload
        assert payload["previous_report_date"] == "2026-01-01T00:00:00+00:00"
        assert payload["key_wins"][0]["query"] == "q"

    @pytest.mark.asyncio
    async def test_progress_summary_falls_back(self, emitter, events, settings, policy):
        previous = {"site": SITE, "generated_at": "2026-01-01", "search_data": []}
        client = ScriptedClient({"progress_summary": GenerationError("invalid request", status_code=400)})

        progress = await run_progress_analysis(
            previous, [{"query": "q", "page": "p", "impressions": 1}], emitter,
            client=client, settings=settings, policy=policy,
        )

        assert progress.ai_summary == FALLBACK_SUMMARY
        assert progress.key_wins == []
        assert events[-1].type == EventType.DONE

    @pytest.mark.asyncio
    async def test_progress_analysis_rejects_malformed_rows(self, emitter, events, settings, policy):
        previous = {"site": SITE, "generated_at": "2026-01-01", "search_data": []}
        client = ScriptedClient({"progress_summary": {"ai_summary": "unused"}})

        progress = await run_progress_analysis(
            previous, [{"query": "q", "page": "p", "impressions": "lots"}], emitter,
            client=client, settings=settings, policy=policy,
        )

        assert progress is None
        assert events[-1].type == EventType.ERROR
        assert events[-1].message.startswith("Invalid request: Invalid current search rows")
        assert client.calls == []
