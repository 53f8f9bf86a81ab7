"""
Tests for the retry/backoff wrapper and the Claude client.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from linkstrategy.analyzer import (
    ClaudeClient,
    GenerationError,
    RetryPolicy,
    SchemaValidationError,
    backoff_delay,
    call_with_policy,
    call_with_retry,
    is_transient_error,
)


def failing(errors, result="ok"):
    """Coroutine factory raising each error in turn, then returning `result`."""
    calls = {"count": 0}
    errors = list(errors)

    async def fn():
        calls["count"] += 1
        if errors:
            raise errors.pop(0)
        return result

    return fn, calls


# ============================================================================
# Classification
# ============================================================================

class TestIsTransientError:
    """Test transient/permanent classification."""

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504, 529])
    def test_transient_status_codes(self, status):
        assert is_transient_error(GenerationError("boom", status_code=status))

    @pytest.mark.parametrize("message", [
        "503 Service Unavailable",
        "Model is OVERLOADED",
        "Rate limit exceeded",
        "UNAVAILABLE: connection reset",
    ])
    def test_transient_messages(self, message):
        assert is_transient_error(Exception(message))

    def test_transient_flag(self):
        assert is_transient_error(GenerationError("connection dropped", transient=True))

    @pytest.mark.parametrize("exc", [
        GenerationError("invalid request", status_code=400),
        GenerationError("bad key", status_code=401),
        SchemaValidationError("missing field"),
        ValueError("nope"),
    ])
    def test_permanent_errors(self, exc):
        assert not is_transient_error(exc)


class TestBackoffDelay:
    """Test exponential backoff with jitter."""

    @pytest.mark.parametrize("attempt,low", [(0, 1.0), (1, 2.0), (2, 4.0), (3, 8.0)])
    def test_delay_bounds(self, attempt, low):
        for _ in range(20):
            delay = backoff_delay(attempt, 1.0)
            assert low <= delay <= low + 1.0


# ============================================================================
# Retry Loop
# ============================================================================

class TestCallWithRetry:
    """Test the retry combinator."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        """Should return immediately without sleeping."""
        sleep = AsyncMock()
        fn, calls = failing([])

        assert await call_with_retry(fn, sleep=sleep) == "ok"
        assert calls["count"] == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_always_transient_makes_exactly_max_retries_calls(self):
        """Should attempt max_retries times and re-raise the last error."""
        sleep = AsyncMock()
        errors = [GenerationError(f"503 attempt {i}", status_code=503) for i in range(4)]
        fn, calls = failing(errors)

        with pytest.raises(GenerationError, match="attempt 3"):
            await call_with_retry(fn, max_retries=4, sleep=sleep)

        assert calls["count"] == 4
        # No wait after the final attempt
        assert sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_permanent_error_is_not_retried(self):
        sleep = AsyncMock()
        fn, calls = failing([GenerationError("invalid request", status_code=400)])

        with pytest.raises(GenerationError):
            await call_with_retry(fn, max_retries=4, sleep=sleep)

        assert calls["count"] == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_recovers_after_transient_errors(self):
        sleep = AsyncMock()
        fn, calls = failing([Exception("overloaded"), Exception("429 too many")], result={"a": 1})

        assert await call_with_retry(fn, max_retries=4, sleep=sleep) == {"a": 1}
        assert calls["count"] == 3

    @pytest.mark.asyncio
    async def test_on_retry_receives_attempt_and_delay(self):
        """Should report the attempt number and the delay that is slept."""
        sleep = AsyncMock()
        reported = []
        fn, _ = failing([Exception("overloaded"), Exception("overloaded")])

        with patch("linkstrategy.analyzer.retry.random.uniform", return_value=0.5):
            await call_with_retry(
                fn,
                max_retries=4,
                initial_delay=1.0,
                on_retry=lambda attempt, delay: reported.append((attempt, delay)),
                sleep=sleep,
            )

        assert reported == [(1, 1.5), (2, 2.5)]
        assert [c.args[0] for c in sleep.await_args_list] == [1.5, 2.5]

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_break_retry(self):
        """Should keep retrying when the progress callback raises."""
        sleep = AsyncMock()
        fn, calls = failing([Exception("unavailable")])

        def callback(attempt, delay):
            raise RuntimeError("listener gone")

        assert await call_with_retry(fn, on_retry=callback, sleep=sleep) == "ok"
        assert calls["count"] == 2

    @pytest.mark.asyncio
    async def test_rejects_zero_attempts(self):
        fn, _ = failing([])

        with pytest.raises(ValueError):
            await call_with_retry(fn, max_retries=0)

    @pytest.mark.asyncio
    async def test_policy_wrapper(self, policy, no_sleep):
        fn, calls = failing([Exception("503")] * 10)

        with pytest.raises(Exception):
            await call_with_policy(fn, policy)

        assert calls["count"] == policy.max_retries
        assert no_sleep.await_count == policy.max_retries - 1

    def test_policy_from_settings(self, settings):
        policy = RetryPolicy.from_settings(settings)

        assert policy.max_retries == settings.GENERATION_MAX_RETRIES
        assert policy.initial_delay == settings.GENERATION_INITIAL_DELAY


# ============================================================================
# Claude Client
# ============================================================================

def _response(*blocks, stop_reason="tool_use"):
    return SimpleNamespace(
        content=list(blocks),
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=100, output_tokens=50),
    )


@pytest.fixture
def sdk():
    mock = MagicMock()
    mock.messages.create = AsyncMock()
    return mock


class TestClaudeClient:
    """Test structured generation through forced tool use."""

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with pytest.raises(ValueError):
            ClaudeClient()

    @pytest.mark.asyncio
    async def test_returns_tool_input(self, sdk):
        """Should force the output tool and return its input."""
        sdk.messages.create.return_value = _response(
            SimpleNamespace(type="text", text="thinking"),
            SimpleNamespace(type="tool_use", name="clustering", input={"thematic_clusters": []}),
        )
        client = ClaudeClient(async_client=sdk)

        result = await client.generate("prompt", {"type": "object"}, system="sys", tool_name="clustering")

        assert result == {"thematic_clusters": []}
        kwargs = sdk.messages.create.await_args.kwargs
        assert kwargs["tool_choice"] == {"type": "tool", "name": "clustering"}
        assert kwargs["tools"][0]["input_schema"] == {"type": "object"}
        assert kwargs["system"] == "sys"

    @pytest.mark.asyncio
    async def test_tracks_usage(self, sdk):
        sdk.messages.create.return_value = _response(
            SimpleNamespace(type="tool_use", name="record_result", input={}),
        )
        client = ClaudeClient(async_client=sdk)

        await client.generate("p", {})
        await client.generate("p", {})

        summary = client.get_usage_summary()
        assert summary["total_calls"] == 2
        assert summary["total_tokens"] == 300

    @pytest.mark.asyncio
    async def test_missing_tool_block_is_schema_error(self, sdk):
        sdk.messages.create.return_value = _response(
            SimpleNamespace(type="text", text="no tool"), stop_reason="max_tokens"
        )
        client = ClaudeClient(async_client=sdk)

        with pytest.raises(SchemaValidationError, match="max_tokens"):
            await client.generate("p", {})
