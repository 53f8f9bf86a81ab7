"""
Pipeline Error Taxonomy

- Transient-Upstream: GenerationError classified transient, retried
- Permanent-Upstream: GenerationError / SchemaValidationError, surfaced at once
- Input-Validation: InputValidationError, raised before any external call
- Optional-Enrichment-Failure: recorded as PhaseFailure, never raised
"""

from ..analyzer.client import GenerationError, SchemaValidationError
from ..collector.wordpress import CollectorError
from ..integrations.dataforseo import DataForSEOError


class InputValidationError(ValueError):
    """Caller input is missing or invalid."""
    pass


class PhaseFailedError(Exception):
    """A fatal phase failed; the run is aborted."""
    def __init__(self, phase: str, details: str = ""):
        super().__init__(f"Phase '{phase}' failed: {details}")
        self.phase = phase
        self.details = details


__all__ = [
    "GenerationError",
    "SchemaValidationError",
    "CollectorError",
    "DataForSEOError",
    "InputValidationError",
    "PhaseFailedError",
]
