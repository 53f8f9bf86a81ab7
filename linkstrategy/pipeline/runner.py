"""
Phase Runner and Run State Machine

    IDLE -> RUNNING -> {PARTIALLY_FAILED | FAILED | COMPLETED}
    PARTIALLY_FAILED -> {FAILED | COMPLETED}

PARTIALLY_FAILED is only reachable through optional phases or isolated
sub-tasks and still ends COMPLETED with the failures recorded. FAILED emits
the terminal error event; COMPLETED emits the terminal done event.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..analyzer.retry import RetryPolicy
from ..phases.base import BasePhase
from ..phases.schemas import PhaseModel
from .errors import CollectorError, InputValidationError, PhaseFailedError
from .events import ProgressEmitter

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"
    COMPLETED = "completed"


TRANSITIONS = {
    RunState.IDLE: {RunState.RUNNING, RunState.FAILED},
    RunState.RUNNING: {RunState.PARTIALLY_FAILED, RunState.FAILED, RunState.COMPLETED},
    RunState.PARTIALLY_FAILED: {RunState.PARTIALLY_FAILED, RunState.FAILED, RunState.COMPLETED},
    RunState.FAILED: set(),
    RunState.COMPLETED: set(),
}


class InvalidTransition(RuntimeError):
    pass


@dataclass
class PhaseFailure:
    """An absorbed failure of an optional phase or sub-task."""
    phase: str
    error: str
    item: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"phase": self.phase, "error": self.error, "item": self.item}


class PipelineRun:
    """
    Drives the phases of one run and owns its state.

    Fatal phase failures raise PhaseFailedError; optional ones are recorded
    and return None.
    """

    def __init__(self, emitter: ProgressEmitter, policy: Optional[RetryPolicy] = None):
        self.emitter = emitter
        self.policy = policy or RetryPolicy()
        self.state = RunState.IDLE
        self.current_phase: Optional[str] = None
        self.failures: List[PhaseFailure] = []

    # =========================================================================
    # STATE
    # =========================================================================

    def _transition(self, new_state: RunState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise InvalidTransition(f"Cannot move from {self.state.value} to {new_state.value}")
        logger.debug(f"Run state {self.state.value} -> {new_state.value}")
        self.state = new_state

    def start(self, message: Optional[str] = None) -> None:
        self._transition(RunState.RUNNING)
        if message:
            self.emitter.progress(message)

    def complete(self, payload: Any) -> None:
        self._transition(RunState.COMPLETED)
        if self.failures:
            logger.warning(f"Run completed with {len(self.failures)} absorbed failure(s)")
        self.emitter.done(payload)

    def fail(self, exc: BaseException) -> None:
        self._transition(RunState.FAILED)
        message, details = describe_failure(exc)
        logger.error(f"Run failed: {message} ({details})")
        self.emitter.error(message, details)

    def record_failure(self, phase: str, error: BaseException, item: Optional[str] = None) -> None:
        label = f"{phase} [{item}]" if item else phase
        logger.warning(f"Optional step {label} failed, continuing: {error}")
        self.failures.append(PhaseFailure(phase=phase, error=str(error), item=item))
        self._transition(RunState.PARTIALLY_FAILED)

    # =========================================================================
    # PHASE EXECUTION
    # =========================================================================

    def _retry_reporter(self, phase: BasePhase):
        def on_retry(attempt: int, delay: float) -> None:
            self.emitter.progress(
                f"{phase.display_name} waiting (attempt {attempt}). Retrying in {round(delay)}s..."
            )
        return on_retry

    async def run_phase(
        self,
        phase: BasePhase,
        fatal: Optional[bool] = None,
        **inputs: Any,
    ) -> Optional[PhaseModel]:
        """
        Run one phase.

        Args:
            phase: Phase to run
            fatal: Overrides phase.fatal
            **inputs: Phase inputs

        Returns:
            The validated phase output, or None if an optional phase failed
        """
        fatal = phase.fatal if fatal is None else fatal
        self.current_phase = phase.name
        self.emitter.progress(f"{phase.display_name} is working...")

        try:
            return await phase.run(on_retry=self._retry_reporter(phase), **inputs)
        except Exception as e:
            if fatal:
                raise PhaseFailedError(phase.name, str(e)) from e
            self.record_failure(phase.name, e)
            return None

    async def run_isolated(
        self,
        phase: BasePhase,
        items: Sequence[Tuple[str, Dict[str, Any]]],
    ) -> List[Tuple[str, Optional[PhaseModel]]]:
        """
        Run one phase per item concurrently, isolating failures per item.

        Args:
            phase: Phase to run for every item
            items: (label, inputs) pairs

        Returns:
            (label, result) pairs in item order; result is None for failed items
        """
        self.current_phase = phase.name
        total = len(items)

        async def run_one(index: int, label: str, inputs: Dict[str, Any]) -> PhaseModel:
            self.emitter.progress(f'{phase.display_name} for "{label}" ({index + 1}/{total})...')
            return await phase.run(on_retry=self._retry_reporter(phase), **inputs)

        results = await asyncio.gather(
            *[run_one(i, label, inputs) for i, (label, inputs) in enumerate(items)],
            return_exceptions=True,
        )

        collected = []
        for (label, _), result in zip(items, results):
            if isinstance(result, BaseException):
                self.record_failure(phase.name, result, item=label)
                collected.append((label, None))
            else:
                collected.append((label, result))
        return collected


def describe_failure(exc: BaseException) -> Tuple[str, str]:
    """Short user-facing message plus free-form details for an error event."""
    if isinstance(exc, InputValidationError):
        return f"Invalid request: {exc}", type(exc).__name__
    if isinstance(exc, CollectorError):
        return "Content collection failed", str(exc)
    if isinstance(exc, PhaseFailedError):
        return f"Phase '{exc.phase}' failed", exc.details
    return "Analysis failed", f"{type(exc).__name__}: {exc}"
