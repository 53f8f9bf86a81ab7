"""
Pytest Configuration and Shared Fixtures

Provides common fixtures and configuration for all test modules.
"""

from typing import Any, Dict, List
from unittest.mock import AsyncMock

import pytest

from linkstrategy.analyzer.retry import RetryPolicy
from linkstrategy.collector.models import Page
from linkstrategy.pipeline.events import ProgressEmitter
from linkstrategy.utils.config import Settings

from fakes import CLUSTERS, SITE, FakeCollector, make_content_gap, make_suggestion


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def site_pages() -> List[Page]:
    """Small site: home -> services, post; post -> services; services -> contact; about is orphan."""
    return [
        Page(
            url=f"{SITE}/",
            title="Home",
            body='<a href="/services/">Services</a> <a href="/blog/post-a/#top">Post</a>',
        ),
        Page(
            url=f"{SITE}/services/",
            title="Services",
            body='<p>What we do</p><a href="../contact/">Contact us</a>',
        ),
        Page(
            url=f"{SITE}/blog/post-a/",
            title="Post A",
            body=(
                '<a href="https://example.com/services/">Our services</a>'
                '<a href="https://other.org/">External</a>'
                '<a href="mailto:info@example.com">Mail</a>'
            ),
        ),
        Page(url=f"{SITE}/contact/", title="Contact", body="<p>Call us</p>"),
        Page(url=f"{SITE}/about/", title="About", body="<p>Our story</p>"),
    ]


@pytest.fixture
def collector(site_pages) -> FakeCollector:
    return FakeCollector(site_pages)


@pytest.fixture
def analysis_responses() -> Dict[str, Any]:
    return {
        "clustering": CLUSTERS,
        "link_suggestions": {"suggestions": [make_suggestion(1, 0.9), make_suggestion(2, 0.5)]},
        "content_gap": {"content_gap_suggestions": [
            make_content_gap("Pricing guide", "web design cost"),
            make_content_gap("Portfolio page"),
        ]},
    }


@pytest.fixture
def events() -> List:
    return []


@pytest.fixture
def emitter(events) -> ProgressEmitter:
    return ProgressEmitter(events.append)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ANTHROPIC_API_KEY="test-key",
        DATAFORSEO_LOGIN=None,
        DATAFORSEO_PASSWORD=None,
        _env_file=None,
    )


@pytest.fixture
def no_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def policy(no_sleep) -> RetryPolicy:
    """Retry policy that never actually waits."""
    return RetryPolicy(max_retries=4, initial_delay=1.0, sleep=no_sleep)


# ============================================================================
# Test Markers
# ============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
