"""
API Endpoints for Link Strategy Analysis

FastAPI application that:
1. Validates the request body (422 before any run starts)
2. Starts the requested pipeline run as a background task
3. Streams its progress events as newline-delimited JSON until the
   terminal done/error event

If the client disconnects, the run continues to completion and further
events are dropped.
"""

import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Set

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from linkstrategy import __version__
from linkstrategy.pipeline import (
    ProgressEmitter,
    run_analysis,
    run_content_generation,
    run_content_strategy,
    run_deep_analysis,
    run_geographic_replication,
    run_progress_analysis,
    run_topical_authority,
)
from linkstrategy.utils import Settings, get_settings

# Configure logging to stdout
logging.basicConfig(
    level=get_settings().LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

app = FastAPI(
    title="Linkstrategy Authority Engine",
    description="Internal link authority, search opportunity and Claude-driven content strategy",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

NDJSON = "application/x-ndjson"

# Keep references so running tasks are not garbage collected
_running_tasks: Set[asyncio.Task] = set()


# ============================================================================
# REQUEST MODELS
# ============================================================================

class StrategicContextModel(BaseModel):
    source_context: str = Field(min_length=1)
    central_intent: str = Field(min_length=1)
    geographic_focus: Optional[str] = None


class AnalyzeRequest(BaseModel):
    site_root: str = Field(min_length=1, description="Root URL of the site")
    strategy: Literal["global", "pillar", "money"] = "global"
    target_urls: List[str] = Field(default_factory=list)
    search_data: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Search analytics rows, flat or Search Console 'keys' shape",
    )
    behavior_data: List[Dict[str, Any]] = Field(default_factory=list)
    search_site_url: Optional[str] = None
    strategic_context: Optional[StrategicContextModel] = None
    include_content_gap: bool = True


class ContentStrategyRequest(BaseModel):
    site_root: str = Field(min_length=1)
    thematic_clusters: List[Dict[str, Any]] = Field(min_length=1)
    search_data: List[Dict[str, Any]] = Field(default_factory=list)
    behavior_data: List[Dict[str, Any]] = Field(default_factory=list)
    strategic_context: Optional[StrategicContextModel] = None


class DeepAnalyzeRequest(BaseModel):
    page_url: str = Field(min_length=1)
    page_diagnostics: List[Dict[str, Any]] = Field(min_length=1)
    search_data: List[Dict[str, Any]] = Field(default_factory=list)
    strategic_context: Optional[StrategicContextModel] = None
    thematic_clusters: List[Dict[str, Any]] = Field(default_factory=list)


class TopicalAuthorityRequest(BaseModel):
    site_root: str = Field(min_length=1)
    thematic_clusters: List[Dict[str, Any]] = Field(min_length=1)
    page_diagnostics: List[Dict[str, Any]] = Field(min_length=1)
    strategic_context: StrategicContextModel


class ReplicateRequest(BaseModel):
    existing_roadmap: Dict[str, Any]
    new_location: str = Field(min_length=1)


class GenerateContentRequest(BaseModel):
    enhancement_title: str = Field(min_length=1)
    page_body: Optional[str] = None
    page_url: Optional[str] = None
    opportunity_queries: List[Dict[str, Any]] = Field(default_factory=list)


class ProgressCheckRequest(BaseModel):
    previous_report: Dict[str, Any]
    search_data: List[Dict[str, Any]] = Field(min_length=1)


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_collaborators() -> Dict[str, Any]:
    """
    External collaborators handed to every run.

    None means "build from settings"; tests override this dependency.
    """
    return {
        "client": None,
        "collector": None,
        "metrics_client": None,
        "settings": None,
        "policy": None,
    }


def _shared(collaborators: Dict[str, Any], *extra: str) -> Dict[str, Any]:
    """Client, settings and retry policy plus the named extra collaborators."""
    return {key: collaborators.get(key) for key in ("client", "settings", "policy") + extra}


def _context(model: Optional[StrategicContextModel]) -> Optional[Dict[str, Any]]:
    return model.model_dump() if model else None


# ============================================================================
# STREAMING
# ============================================================================

def stream_run(start: Callable[[ProgressEmitter], Awaitable[Any]]) -> StreamingResponse:
    """Run `start(emitter)` in the background and stream its events as NDJSON."""
    queue: asyncio.Queue = asyncio.Queue()
    emitter = ProgressEmitter(queue.put_nowait)

    def on_finished(task: asyncio.Task) -> None:
        _running_tasks.discard(task)
        if task.cancelled():
            emitter.error("Run cancelled")
        elif task.exception() is not None:
            logger.error(f"Run crashed: {task.exception()}")
            emitter.error("Internal error", str(task.exception()))
        elif not emitter.finished:
            emitter.error("Run ended without a result")

    task = asyncio.create_task(start(emitter))
    _running_tasks.add(task)
    task.add_done_callback(on_finished)

    async def events():
        try:
            while True:
                event = await queue.get()
                yield json.dumps(event.to_dict(), default=str) + "\n"
                if event.is_terminal:
                    break
        finally:
            if not emitter.finished:
                logger.info("Client disconnected, run continues without streaming")
                emitter.connected = False

    return StreamingResponse(events(), media_type=NDJSON)


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Linkstrategy Authority Engine"}


@app.get("/health")
async def health(settings: Settings = Depends(get_settings)):
    """Detailed health check."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "runs_in_progress": len(_running_tasks),
        "claude_configured": bool(settings.ANTHROPIC_API_KEY),
        "keyword_enrichment": settings.has_dataforseo_credentials,
    }


@app.post("/api/analyze")
async def analyze(
    request: AnalyzeRequest,
    collaborators: Dict[str, Any] = Depends(get_collaborators),
):
    """Full authority & opportunity analysis, streamed."""
    logger.info(f"Analysis requested: {request.site_root} (strategy={request.strategy})")
    return stream_run(lambda emitter: run_analysis(
        request.site_root,
        emitter,
        strategy=request.strategy,
        target_urls=request.target_urls,
        search_rows=request.search_data,
        behavior_rows=request.behavior_data,
        search_site_url=request.search_site_url,
        strategic_context=_context(request.strategic_context),
        include_content_gap=request.include_content_gap,
        **_shared(collaborators, "collector", "metrics_client"),
    ))


@app.post("/api/content-strategy")
async def content_strategy(
    request: ContentStrategyRequest,
    collaborators: Dict[str, Any] = Depends(get_collaborators),
):
    return stream_run(lambda emitter: run_content_strategy(
        request.site_root,
        request.thematic_clusters,
        emitter,
        search_rows=request.search_data,
        behavior_rows=request.behavior_data,
        strategic_context=_context(request.strategic_context),
        **_shared(collaborators, "metrics_client"),
    ))


@app.post("/api/deep-analyze")
async def deep_analyze(
    request: DeepAnalyzeRequest,
    collaborators: Dict[str, Any] = Depends(get_collaborators),
):
    return stream_run(lambda emitter: run_deep_analysis(
        request.page_url,
        request.page_diagnostics,
        emitter,
        search_rows=request.search_data,
        strategic_context=_context(request.strategic_context),
        thematic_clusters=request.thematic_clusters or None,
        **_shared(collaborators, "collector"),
    ))


@app.post("/api/topical-authority")
async def topical_authority(
    request: TopicalAuthorityRequest,
    collaborators: Dict[str, Any] = Depends(get_collaborators),
):
    return stream_run(lambda emitter: run_topical_authority(
        request.site_root,
        request.thematic_clusters,
        request.page_diagnostics,
        _context(request.strategic_context),
        emitter,
        **_shared(collaborators),
    ))


@app.post("/api/replicate-topical-authority")
async def replicate_topical_authority(
    request: ReplicateRequest,
    collaborators: Dict[str, Any] = Depends(get_collaborators),
):
    return stream_run(lambda emitter: run_geographic_replication(
        request.existing_roadmap,
        request.new_location,
        emitter,
        **_shared(collaborators),
    ))


@app.post("/api/generate-content")
async def generate_content(
    request: GenerateContentRequest,
    collaborators: Dict[str, Any] = Depends(get_collaborators),
):
    return stream_run(lambda emitter: run_content_generation(
        request.enhancement_title,
        emitter,
        page_body=request.page_body,
        page_url=request.page_url,
        opportunity_queries=request.opportunity_queries,
        **_shared(collaborators, "collector"),
    ))


@app.post("/api/progress-check")
async def progress_check(
    request: ProgressCheckRequest,
    collaborators: Dict[str, Any] = Depends(get_collaborators),
):
    return stream_run(lambda emitter: run_progress_analysis(
        request.previous_report,
        request.search_data,
        emitter,
        **_shared(collaborators),
    ))


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.analyze:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().ENVIRONMENT == "development",
    )
