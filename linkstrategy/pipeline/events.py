"""
Progress/Event Emitter

Ordered delivery of run events to a single consumer:
- progress: any number, any time before the terminal event
- done: terminal, carries the result payload
- error: terminal, carries a short message and diagnostic details

Exactly one terminal event is emitted per emitter; anything emitted after it
is dropped. A sink that raises is treated as disconnected: the failure is
logged, the producer keeps running and later emissions become no-ops.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    PROGRESS = "progress"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    type: EventType
    message: Optional[str] = None
    payload: Any = None
    details: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.type != EventType.PROGRESS

    def to_dict(self) -> Dict[str, Any]:
        if self.type == EventType.PROGRESS:
            return {"type": self.type.value, "message": self.message}
        if self.type == EventType.DONE:
            return {"type": self.type.value, "payload": self.payload}
        return {"type": self.type.value, "message": self.message, "details": self.details}


Sink = Callable[[ProgressEvent], Any]


class ProgressEmitter:
    """
    Single-producer event emitter for one run.

    Usage:
        events = []
        emitter = ProgressEmitter(events.append)
        emitter.progress("Collecting pages...")
        emitter.done(report.to_dict())
    """

    def __init__(self, sink: Optional[Sink] = None):
        self._sink = sink
        self.connected = sink is not None
        self.finished = False
        self.terminal_event: Optional[ProgressEvent] = None

    def progress(self, message: str) -> None:
        logger.info(message)
        self._emit(ProgressEvent(EventType.PROGRESS, message=message))

    def done(self, payload: Any) -> None:
        self._emit(ProgressEvent(EventType.DONE, payload=payload))

    def error(self, message: str, details: Optional[str] = None) -> None:
        self._emit(ProgressEvent(EventType.ERROR, message=message, details=details))

    def _emit(self, event: ProgressEvent) -> None:
        if self.finished:
            logger.debug(f"Dropping {event.type.value} event after terminal event")
            return
        if event.is_terminal:
            self.finished = True
            self.terminal_event = event

        if not self.connected:
            return
        try:
            self._sink(event)
        except Exception as e:
            logger.error(f"Event sink failed, treating consumer as disconnected: {e}")
            self.connected = False
