"""
WordPress Content Collector

Reads published posts and pages through the public WordPress REST API
(/wp-json/wp/v2). No authentication is needed for published content.

The collector never retries on its own; a failed request surfaces as a
CollectorError and the caller decides what that means for the run.
"""

import asyncio
import html
import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

import httpx

from .models import Page

logger = logging.getLogger(__name__)


class CollectorError(Exception):
    """Raised when published content cannot be retrieved."""
    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class WordPressCollector:
    """
    Async collector for WordPress sites.

    Usage:
        async with WordPressCollector() as collector:
            pages = await collector.list_published_pages("https://example.com")
            body = await collector.get_page_body(pages[0].url)
    """

    PER_PAGE = 100  # WP REST API maximum
    CONTENT_TYPES = ("posts", "pages")

    def __init__(
        self,
        timeout: float = 30.0,
        max_pages: int = 1000,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.max_pages = max_pages
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            headers={
                "User-Agent": "Mozilla/5.0 (compatible; LinkstrategyBot/1.0)",
                "Accept": "application/json",
            },
        )
        self._site_root: Optional[str] = None

    async def list_published_pages(
        self,
        site_root: str,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> List[Page]:
        """
        Fetch every published post and page of the site.

        Args:
            site_root: Root URL of the WordPress site
            on_progress: Optional callback receiving human-readable status lines

        Returns:
            Pages with url, title and rendered HTML body, posts first
        """
        api_root = self._api_root(site_root)
        self._site_root = site_root

        results = await asyncio.gather(*[
            self._fetch_all(f"{api_root}/{content_type}", on_progress)
            for content_type in self.CONTENT_TYPES
        ])

        pages: List[Page] = []
        seen = set()
        for items in results:
            for item in items:
                page = self._to_page(item)
                if page is None or page.url in seen:
                    continue
                seen.add(page.url)
                pages.append(page)
                if len(pages) >= self.max_pages:
                    logger.warning(f"Page limit reached ({self.max_pages}), truncating collection")
                    return pages

        logger.info(f"Collected {len(pages)} published documents from {site_root}")
        return pages

    async def get_page_body(self, url: str) -> str:
        """
        Fetch the rendered body of a single published document by its URL.

        The document is looked up by slug (last path segment) among posts,
        then pages.
        """
        parsed = urlparse(url)
        slug = [segment for segment in parsed.path.split("/") if segment]
        if not slug:
            raise CollectorError(f"Cannot derive a slug from {url}")

        api_root = self._api_root(self._site_root or f"{parsed.scheme}://{parsed.netloc}")
        for content_type in self.CONTENT_TYPES:
            items = await self._get_json(
                f"{api_root}/{content_type}",
                params={"slug": slug[-1], "_fields": "link,title,content"},
            )
            for item in items:
                page = self._to_page(item)
                if page is not None:
                    return page.body

        raise CollectorError(f"No published document found for {url}")

    # =========================================================================
    # INTERNALS
    # =========================================================================

    @staticmethod
    def _api_root(site_root: str) -> str:
        if not site_root.startswith(("http://", "https://")):
            site_root = f"https://{site_root}"
        return f"{site_root.rstrip('/')}/wp-json/wp/v2"

    async def _fetch_all(
        self,
        endpoint: str,
        on_progress: Optional[Callable[[str], None]],
    ) -> List[Dict[str, Any]]:
        """Walk a paginated endpoint until X-WP-TotalPages is exhausted."""
        items: List[Dict[str, Any]] = []
        page = 1
        total_pages = 1

        while page <= total_pages:
            response = await self._get(
                endpoint,
                params={
                    "per_page": self.PER_PAGE,
                    "page": page,
                    "status": "publish",
                    "_fields": "link,title,content",
                },
            )
            batch = self._decode(response)
            if isinstance(batch, list):
                items.extend(batch)

            header = response.headers.get("X-WP-TotalPages")
            if header:
                total_pages = int(header)
            elif not isinstance(batch, list) or len(batch) < self.PER_PAGE:
                break
            else:
                total_pages = page + 1

            if on_progress:
                on_progress(f"Fetched {len(items)} items from {endpoint.rsplit('/', 1)[-1]}")
            if len(items) >= self.max_pages:
                break
            page += 1

        return items

    async def _get(self, url: str, params: Dict[str, Any]) -> httpx.Response:
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise CollectorError(f"Request to {url} failed: {e}") from e

        if response.status_code != 200:
            raise CollectorError(
                f"Failed to fetch from {url}. Status: {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise CollectorError(
                f"{response.url} did not return JSON (content-type: "
                f"{response.headers.get('content-type', 'unknown')})"
            ) from e

    async def _get_json(self, url: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        data = self._decode(await self._get(url, params))
        return data if isinstance(data, list) else []

    @staticmethod
    def _to_page(item: Dict[str, Any]) -> Optional[Page]:
        link = item.get("link")
        if not link:
            return None
        title = item.get("title") or {}
        content = item.get("content") or {}
        return Page(
            url=link,
            title=html.unescape(title.get("rendered", "") if isinstance(title, dict) else str(title)),
            body=content.get("rendered", "") if isinstance(content, dict) else str(content),
        )

    async def close(self):
        """Close the HTTP client."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
