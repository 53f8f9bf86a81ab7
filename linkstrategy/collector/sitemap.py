"""
Sitemap Content Collector

Fallback collector for sites without the WordPress REST API. Discovers
published URLs from XML sitemaps, then downloads every page.

Sitemap discovery order:
- /sitemap.xml
- /sitemap_index.xml
- Sitemap: directive in robots.txt

Sitemap index files are followed recursively and gzipped sitemaps are
decompressed.
"""

import asyncio
import gzip
import logging
import re
from typing import Callable, List, Optional
from urllib.parse import urlparse
import xml.etree.ElementTree as ET

import httpx
from bs4 import BeautifulSoup

from .models import Page
from .wordpress import CollectorError

logger = logging.getLogger(__name__)


class SitemapCollector:
    """
    Collects pages by walking the site's sitemap.

    Usage:
        async with SitemapCollector(max_pages=500) as collector:
            pages = await collector.list_published_pages("https://example.com")
    """

    def __init__(
        self,
        timeout: float = 15.0,
        max_pages: int = 1000,
        concurrency: int = 10,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.max_pages = max_pages
        self._semaphore = asyncio.Semaphore(concurrency)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={
                "User-Agent": "Mozilla/5.0 (compatible; LinkstrategyBot/1.0)",
                "Accept": "application/xml,text/xml,text/html,*/*",
            },
        )

    async def list_published_pages(
        self,
        site_root: str,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> List[Page]:
        """Discover sitemap URLs on the site's host and download each page."""
        if not site_root.startswith(("http://", "https://")):
            site_root = f"https://{site_root}"
        base_url = site_root.rstrip("/")
        host = urlparse(base_url).netloc.lower()

        urls = await self._discover_urls(base_url)
        same_host = (u for u in urls if urlparse(u).netloc.lower() == host)
        urls = list(dict.fromkeys(same_host))[: self.max_pages]
        if not urls:
            raise CollectorError(f"No sitemap URLs found for {base_url}")

        logger.info(f"Sitemap lists {len(urls)} URLs on {host}, downloading")
        done = 0

        async def fetch(url: str) -> Optional[Page]:
            nonlocal done
            async with self._semaphore:
                body = await self._fetch_html(url)
            done += 1
            if on_progress and done % 25 == 0:
                on_progress(f"Downloaded {done} / {len(urls)} pages")
            if body is None:
                return None
            return Page(url=url, title=self._extract_title(body) or url, body=body)

        pages = [p for p in await asyncio.gather(*[fetch(u) for u in urls]) if p]
        logger.info(f"Collected {len(pages)} pages via sitemap")
        return pages

    async def get_page_body(self, url: str) -> str:
        body = await self._fetch_html(url)
        if body is None:
            raise CollectorError(f"Could not fetch {url}")
        return body

    # =========================================================================
    # SITEMAP DISCOVERY
    # =========================================================================

    async def _discover_urls(self, base_url: str) -> List[str]:
        for candidate in (f"{base_url}/sitemap.xml", f"{base_url}/sitemap_index.xml"):
            urls = await self._fetch_and_parse_sitemap(candidate)
            if urls:
                logger.info(f"Found sitemap at {candidate} with {len(urls)} URLs")
                return urls

        from_robots = await self._find_sitemap_in_robots(f"{base_url}/robots.txt")
        if from_robots:
            urls = await self._fetch_and_parse_sitemap(from_robots)
            if urls:
                logger.info(f"Found sitemap from robots.txt: {from_robots} with {len(urls)} URLs")
                return urls

        logger.warning(f"No sitemap found for {base_url}")
        return []

    async def _fetch_and_parse_sitemap(self, url: str) -> List[str]:
        try:
            response = await self.client.get(url)
        except httpx.RequestError as e:
            logger.debug(f"Failed to fetch {url}: {e}")
            return []

        if response.status_code != 200:
            return []

        content = response.content
        if url.endswith(".gz"):
            try:
                content = gzip.decompress(content)
            except OSError:
                logger.debug(f"{url} is not actually gzipped")

        return await self._parse_sitemap_xml(content.decode("utf-8", errors="ignore"))

    async def _parse_sitemap_xml(self, xml_content: str) -> List[str]:
        urls: List[str] = []
        xml_content = re.sub(r'\sxmlns="[^"]+"', '', xml_content)
        try:
            root = ET.fromstring(xml_content)
        except ET.ParseError as e:
            logger.warning(f"XML parse error: {e}")
            return urls

        if root.tag == "sitemapindex":
            for loc in root.findall(".//sitemap/loc"):
                if loc.text:
                    urls.extend(await self._fetch_and_parse_sitemap(loc.text.strip()))
                if len(urls) >= self.max_pages:
                    break
        else:
            for loc in root.findall(".//url/loc"):
                if loc.text:
                    urls.append(loc.text.strip())

        return urls

    async def _find_sitemap_in_robots(self, robots_url: str) -> Optional[str]:
        try:
            response = await self.client.get(robots_url)
        except httpx.RequestError:
            return None
        if response.status_code != 200:
            return None

        for line in response.text.splitlines():
            line = line.strip()
            if line.lower().startswith("sitemap:"):
                sitemap_url = line.split(":", 1)[1].strip()
                if sitemap_url.startswith("http"):
                    return sitemap_url
        return None

    # =========================================================================
    # PAGE DOWNLOAD
    # =========================================================================

    async def _fetch_html(self, url: str) -> Optional[str]:
        try:
            response = await self.client.get(url)
        except httpx.RequestError as e:
            logger.warning(f"Failed to download {url}: {e}")
            return None
        if response.status_code != 200:
            logger.debug(f"Skipping {url}: status {response.status_code}")
            return None
        return response.text

    @staticmethod
    def _extract_title(body: str) -> Optional[str]:
        soup = BeautifulSoup(body, "html.parser")
        if soup.title and soup.title.string:
            return soup.title.string.strip()
        return None

    async def close(self):
        """Close the HTTP client."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
