"""
Generation Pipeline

- events: ordered progress/done/error events for one consumer
- runner: run state machine, fatal vs optional phase policy
- report: Report and ProgressReport aggregates
- orchestrator: run entry points
"""

from .errors import (
    CollectorError,
    DataForSEOError,
    GenerationError,
    InputValidationError,
    PhaseFailedError,
    SchemaValidationError,
)
from .events import EventType, ProgressEmitter, ProgressEvent
from .runner import PhaseFailure, PipelineRun, RunState
from .report import ProgressReport, Report
from .orchestrator import (
    run_analysis,
    run_content_generation,
    run_content_strategy,
    run_deep_analysis,
    run_geographic_replication,
    run_progress_analysis,
    run_topical_authority,
)

__all__ = [
    "CollectorError",
    "DataForSEOError",
    "GenerationError",
    "InputValidationError",
    "PhaseFailedError",
    "SchemaValidationError",
    "EventType",
    "ProgressEmitter",
    "ProgressEvent",
    "PhaseFailure",
    "PipelineRun",
    "RunState",
    "ProgressReport",
    "Report",
    "run_analysis",
    "run_content_generation",
    "run_content_strategy",
    "run_deep_analysis",
    "run_geographic_replication",
    "run_progress_analysis",
    "run_topical_authority",
]
