"""
Base Phase Class for the Generation Pipeline

Every generation phase inherits from this class, which provides:
- Standard interface (name, prompts, declared output model)
- Input validation before any external call
- Retry on transient service failures
- Strict validation of the structured response

Architecture:
    BasePhase (abstract)
    ├── ClusteringPhase
    ├── SuggestionPhase
    ├── ContentGapPhase
    ├── DeepAnalysisPhase
    ├── PillarDiscoveryPhase
    ├── ContentMappingPhase
    ├── PillarGapPhase
    ├── BridgePhase
    ├── ReplicationPhase
    ├── ContentGenerationPhase
    └── ProgressSummaryPhase
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Type, TYPE_CHECKING

from pydantic import ValidationError

from ..analyzer.client import SchemaValidationError
from ..analyzer.retry import RetryPolicy, call_with_policy
from .schemas import PhaseModel

if TYPE_CHECKING:
    from ..analyzer.client import ClaudeClient

logger = logging.getLogger(__name__)


class BasePhase(ABC):
    """
    Abstract base class for all generation phases.

    Each phase must implement:
    - name: Unique identifier, also used as the forced tool name
    - display_name: Human-readable name used in progress messages
    - output_model: Declared output shape
    - system_prompt: Persona and constraints
    - build_prompt(): User prompt from the phase inputs
    """

    # Whether a failure of this phase aborts the run
    fatal = True

    def __init__(self, client: "ClaudeClient", policy: Optional[RetryPolicy] = None):
        """
        Args:
            client: Any object with ClaudeClient.generate()'s signature
            policy: Retry policy for transient failures
        """
        self.client = client
        self.policy = policy or RetryPolicy()

    # =========================================================================
    # ABSTRACT PROPERTIES - Must be implemented by each phase
    # =========================================================================

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique phase identifier (e.g., 'clustering')."""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name (e.g., 'Information Architect')."""
        pass

    @property
    @abstractmethod
    def output_model(self) -> Type[PhaseModel]:
        pass

    @property
    @abstractmethod
    def system_prompt(self) -> str:
        pass

    @property
    def required_inputs(self) -> List[str]:
        return []

    @abstractmethod
    def build_prompt(self, **inputs: Any) -> str:
        pass

    def postprocess(self, result: PhaseModel, **inputs: Any) -> PhaseModel:
        """Adjust a validated result. Override for truncation or backfills."""
        return result

    # =========================================================================
    # MAIN RUN METHOD
    # =========================================================================

    async def run(
        self,
        on_retry: Optional[Callable[[int, float], None]] = None,
        **inputs: Any,
    ) -> PhaseModel:
        """
        Build the prompt, call the service with retry and validate the result.

        Raises:
            ValueError: Required inputs are missing
            GenerationError: Permanent failure or retries exhausted
            SchemaValidationError: Response does not match output_model
        """
        self._validate_inputs(inputs)
        prompt = self.build_prompt(**inputs)
        schema = self.output_model.model_json_schema()

        logger.info(f"[{self.name}] Starting ({len(prompt)} prompt chars)")

        raw = await call_with_policy(
            lambda: self.client.generate(
                prompt,
                schema,
                system=self.system_prompt,
                tool_name=self.name,
            ),
            self.policy,
            on_retry=on_retry,
        )

        result = self.postprocess(self.validate(raw), **inputs)
        logger.info(f"[{self.name}] Complete")
        return result

    def validate(self, raw: Dict[str, Any]) -> PhaseModel:
        """Validate a raw structured response against the declared output shape."""
        try:
            return self.output_model.model_validate_json(json.dumps(raw))
        except (ValidationError, TypeError) as e:
            logger.error(f"[{self.name}] Response failed schema validation: {e}")
            raise SchemaValidationError(
                f"{self.display_name} returned an invalid response: {e}"
            ) from e

    def _validate_inputs(self, inputs: Dict[str, Any]) -> None:
        missing = [key for key in self.required_inputs if inputs.get(key) is None]
        if missing:
            raise ValueError(f"[{self.name}] Missing required inputs: {', '.join(missing)}")


# ============================================================================
# PROMPT HELPERS
# ============================================================================

def format_search_rows(rows, limit: int) -> str:
    """Render search rows as 'query', 'page', impressions, ctr lines."""
    lines = [f'"{r.query}", "{r.page}", {r.impressions}, {r.ctr:.4f}' for r in rows[:limit]]
    if len(rows) > limit:
        lines.append(f"(and {len(rows) - limit} more rows)")
    return "\n".join(lines)


def format_behavior_rows(rows, limit: int) -> str:
    return "\n".join(
        f"'{r.page_path}', {r.sessions}, {r.engagement_rate:.2f}, {r.conversions}"
        for r in rows[:limit]
    )


def format_strategic_context(context) -> str:
    if context is None:
        return "No business context provided. Base the analysis on general traffic potential."
    lines = [
        "BUSINESS CONTEXT:",
        f'- Site objective (source context): "{context.source_context}"',
        f'- Target user intent (central intent): "{context.central_intent}"',
    ]
    if context.geographic_focus:
        lines.append(f'- Primary geographic focus: "{context.geographic_focus}"')
    return "\n".join(lines)
