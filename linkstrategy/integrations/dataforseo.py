"""
DataForSEO Keyword Metrics Client

Secondary metrics collaborator used to enrich content-gap suggestions with
market data (search volume, keyword difficulty, search intent) from the
DataForSEO Labs keyword overview endpoint.

Missing credentials are a valid state: build_metrics_client() returns None
and enrichment is skipped.
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ..analyzer.retry import call_with_retry

logger = logging.getLogger(__name__)

OK_STATUS = 20000
TASK_OK_STATUSES = (20000, 20100)


def first_result_items(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Items of the first task's first result, or [] for any missing level.

    DataForSEO nests payloads as tasks[0].result[0].items and leaves levels
    null when a keyword is unknown.
    """
    try:
        items = response["tasks"][0]["result"][0]["items"]
    except (KeyError, IndexError, TypeError):
        return []
    return items if isinstance(items, list) else []


@dataclass
class RetryConfig:
    """Retry behaviour for transient API failures."""
    max_retries: int = 2
    initial_delay: float = 1.0
    retry_on: tuple = (429, 500, 502, 503, 504)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep


class DataForSEOError(Exception):
    """Keyword lookup failed."""
    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


@dataclass
class KeywordMetrics:
    """Market data for one keyword."""
    keyword: str
    volume: Optional[int] = None
    difficulty: Optional[int] = None
    intent: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyword": self.keyword,
            "volume": self.volume,
            "difficulty": self.difficulty,
            "intent": self.intent,
        }


class DataForSEOClient:
    """
    Async client for DataForSEO keyword lookups.

    Usage:
        async with DataForSEOClient(login="...", password="...") as client:
            metrics = await client.lookup_keyword("seo agency")
    """

    BASE_URL = "https://api.dataforseo.com/v3"
    KEYWORD_OVERVIEW = "dataforseo_labs/google/keyword_overview/live"

    def __init__(
        self,
        login: str,
        password: str,
        location_code: int = 2840,
        language_name: str = "English",
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.location_code = location_code
        self.language_name = language_name
        self.retry = retry_config or RetryConfig()

        token = base64.b64encode(f"{login}:{password}".encode()).decode()
        self._http = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={"Authorization": f"Basic {token}"},
            timeout=timeout,
            transport=transport,
        )
        self._closed = False

    async def lookup_keyword(self, term: str) -> KeywordMetrics:
        """
        Fetch volume, difficulty and main intent for one keyword.

        Raises:
            DataForSEOError: On API error or when the keyword is unknown
        """
        payload = [{
            "keywords": [term],
            "location_code": self.location_code,
            "language_name": self.language_name,
        }]
        items = first_result_items(await self.post(self.KEYWORD_OVERVIEW, payload))
        if not items:
            raise DataForSEOError(f"No keyword data for '{term}'")

        item = items[0]
        return KeywordMetrics(
            keyword=item.get("keyword", term),
            volume=(item.get("keyword_info") or {}).get("search_volume"),
            difficulty=(item.get("keyword_properties") or {}).get("keyword_difficulty"),
            intent=(item.get("search_intent_info") or {}).get("main_intent"),
        )

    async def post(self, endpoint: str, tasks: List[Dict[str, Any]]) -> Dict[str, Any]:
        """POST a task list, retrying transient failures."""
        if self._closed:
            raise DataForSEOError("Client is closed")

        try:
            return await call_with_retry(
                lambda: self._post_once(f"/{endpoint}", tasks),
                max_retries=self.retry.max_retries + 1,
                initial_delay=self.retry.initial_delay,
                is_transient=self._is_retryable,
                sleep=self.retry.sleep,
            )
        except httpx.HTTPError as e:
            raise DataForSEOError(f"HTTP error on {endpoint}: {e}") from e

    def _is_retryable(self, exc: BaseException) -> bool:
        if isinstance(exc, httpx.TransportError):
            return True
        return isinstance(exc, DataForSEOError) and exc.status_code in self.retry.retry_on

    async def _post_once(self, path: str, tasks: List[Dict[str, Any]]) -> Dict[str, Any]:
        response = await self._http.post(path, json=tasks)
        if response.status_code != 200:
            raise DataForSEOError(
                f"{path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise DataForSEOError(f"{path} returned a non-JSON body") from e
        if body.get("status_code") != OK_STATUS:
            raise DataForSEOError(
                f"API error: {body.get('status_message', 'unknown')}",
                status_code=body.get("status_code"),
                response=body,
            )
        failed = [t for t in body.get("tasks") or [] if t.get("status_code") not in TASK_OK_STATUSES]
        if failed:
            raise DataForSEOError(
                f"Task error: {failed[0].get('status_message', 'unknown')}",
                status_code=failed[0].get("status_code"),
                response=body,
            )
        return body

    async def close(self):
        if not self._closed:
            await self._http.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def build_metrics_client(settings) -> Optional[DataForSEOClient]:
    """Create a client from settings, or None when credentials are absent."""
    if not settings.has_dataforseo_credentials:
        logger.info("DataForSEO credentials not configured, keyword enrichment disabled")
        return None
    return DataForSEOClient(
        login=settings.DATAFORSEO_LOGIN,
        password=settings.DATAFORSEO_PASSWORD,
        location_code=settings.DATAFORSEO_LOCATION_CODE,
        language_name=settings.DATAFORSEO_LANGUAGE_NAME,
    )
