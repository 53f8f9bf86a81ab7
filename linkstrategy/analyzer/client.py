"""
Claude API Client for the Generation Pipeline

Every phase asks Claude for structured output. The client forces a single
tool call whose input schema is the phase's declared output shape, so the
response is always a JSON object rather than free text.

Failures are surfaced as GenerationError carrying the upstream status code;
the retry wrapper decides what is transient.
"""

import os
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass

import anthropic

logger = logging.getLogger(__name__)


# ============================================================================
# ERRORS
# ============================================================================

class GenerationError(Exception):
    """Any failure reported by the text-generation service."""
    def __init__(self, message: str, status_code: int = None, transient: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient


class SchemaValidationError(GenerationError):
    """Structured response did not match the declared output shape."""
    pass


# ============================================================================
# USAGE TRACKING
# ============================================================================

# USD per million tokens (Sonnet tier)
INPUT_PRICE = 3.0
OUTPUT_PRICE = 15.0


@dataclass
class TokenUsage:
    """Tokens consumed by one call, or accumulated over a run."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def estimated_cost(self) -> float:
        return (self.input_tokens * INPUT_PRICE + self.output_tokens * OUTPUT_PRICE) / 1_000_000

    def add(self, other: "TokenUsage") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens


# ============================================================================
# CLIENT
# ============================================================================

class ClaudeClient:
    """
    Async Claude client returning structured results.

    Usage:
        client = ClaudeClient()
        result = await client.generate(prompt, ClusteringResult.model_json_schema())
    """

    DEFAULT_MODEL = "claude-sonnet-4-20250514"
    MAX_TOKENS = 8000
    TEMPERATURE = 0.2

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        async_client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        """
        Initialize Claude client.

        Args:
            api_key: Anthropic API key (defaults to env var)
            model: Model to use (defaults to Sonnet 4)
            max_tokens: Output token cap per call
            temperature: Sampling temperature
            async_client: Pre-built SDK client (tests)
        """
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self.api_key and async_client is None:
            raise ValueError("ANTHROPIC_API_KEY not provided")

        self.model = model or self.DEFAULT_MODEL
        self.max_tokens = max_tokens or self.MAX_TOKENS
        self.temperature = self.TEMPERATURE if temperature is None else temperature
        self.async_client = async_client or anthropic.AsyncAnthropic(api_key=self.api_key)

        # Track cumulative usage
        self.total_usage = TokenUsage()
        self.call_count = 0

    @classmethod
    def from_settings(cls, settings) -> "ClaudeClient":
        return cls(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.CLAUDE_MODEL,
            max_tokens=settings.GENERATION_MAX_TOKENS,
            temperature=settings.GENERATION_TEMPERATURE,
        )

    async def generate(
        self,
        prompt: str,
        output_schema: Dict[str, Any],
        system: Optional[str] = None,
        tool_name: str = "record_result",
    ) -> Dict[str, Any]:
        """
        Send a prompt and return the structured result.

        Args:
            prompt: User prompt
            output_schema: JSON schema the result must follow
            system: System prompt
            tool_name: Name of the forced output tool

        Returns:
            The tool input produced by the model

        Raises:
            GenerationError: API failure of any kind
            SchemaValidationError: The model returned no structured output
        """
        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
            "tools": [{
                "name": tool_name,
                "description": "Record the final structured result.",
                "input_schema": output_schema,
            }],
            "tool_choice": {"type": "tool", "name": tool_name},
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self.async_client.messages.create(**kwargs)
        except anthropic.APIStatusError as e:
            logger.error(f"Claude API error ({e.status_code}): {e}")
            raise GenerationError(str(e), status_code=e.status_code) from e
        except anthropic.APIConnectionError as e:
            # Includes APITimeoutError
            logger.warning(f"Claude connection error: {e}")
            raise GenerationError(f"UNAVAILABLE: {e}", transient=True) from e

        self._track_usage(response)

        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and block.name == tool_name:
                return dict(block.input)

        raise SchemaValidationError(
            f"No structured output in response (stop_reason={response.stop_reason})"
        )

    def _track_usage(self, response) -> None:
        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        self.total_usage.add(usage)
        self.call_count += 1
        logger.info(
            f"Claude usage: {usage.total_tokens} tokens (~${usage.estimated_cost:.4f}), "
            f"stop_reason={response.stop_reason}"
        )

    def get_usage_summary(self) -> Dict[str, Any]:
        """Get summary of token usage and costs."""
        return {
            "total_calls": self.call_count,
            "input_tokens": self.total_usage.input_tokens,
            "output_tokens": self.total_usage.output_tokens,
            "total_tokens": self.total_usage.total_tokens,
            "estimated_cost_usd": round(self.total_usage.estimated_cost, 4),
        }
