"""
Internal Link Graph Builder

Parses page bodies for hyperlinks and builds the adjacency map
`source_url -> {target_url}` restricted to crawled pages on the site's host.

Rules:
- Relative hrefs are resolved against the linking page's own URL
- Fragments are stripped; scheme and host are lowercased
- Only http/https targets on the site's host are kept (mailto:, tel:,
  javascript: and pure #anchor links drop out)
- Malformed hrefs are skipped silently
- Targets that are not crawled pages are dropped, so every key and every
  target of the map is a known page URL
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Set
from urllib.parse import urldefrag, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

from ..collector.models import Page

logger = logging.getLogger(__name__)

AdjacencyMap = Dict[str, Set[str]]

ALLOWED_SCHEMES = ("http", "https")


def normalize_url(url: str) -> str:
    """Strip the fragment and lowercase scheme/host. Raises ValueError on malformed input."""
    url, _ = urldefrag(url.strip())
    parsed = urlparse(url)
    # Accessing .port validates bracketed hosts and numeric ports
    parsed.port
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path or "/",
        parsed.params,
        parsed.query,
        "",
    ))


def site_host(site_root: str) -> str:
    """Host name of the analysed site (scheme optional)."""
    if "//" not in site_root:
        site_root = f"https://{site_root}"
    return (urlparse(site_root).hostname or "").lower()


def extract_links(body: str, page_url: str, host: str) -> List[str]:
    """
    Return normalized same-host http(s) link targets found in an HTML body.

    Order follows the document; duplicates are kept (the caller collapses them).
    """
    if not body:
        return []

    soup = BeautifulSoup(body, "html.parser")
    targets = []
    for anchor in soup.find_all("a", href=True):
        href = anchor.get("href", "").strip()
        if not href or href.startswith("#"):
            continue
        try:
            absolute = normalize_url(urljoin(page_url, href))
            parsed = urlparse(absolute)
        except ValueError:
            logger.debug(f"Skipping malformed href on {page_url}: {href!r}")
            continue

        if parsed.scheme not in ALLOWED_SCHEMES:
            continue
        if (parsed.hostname or "") != host:
            continue
        targets.append(absolute)

    return targets


def build_link_graph(
    pages: Iterable[Page],
    site_root: str,
    on_progress: Optional[Callable[[int, int], None]] = None,
) -> AdjacencyMap:
    """
    Build the internal adjacency map for a set of crawled pages.

    Args:
        pages: Crawled pages (url + body)
        site_root: Root URL of the site; its host decides what counts as internal
        on_progress: Optional callback receiving (processed, total)

    Returns:
        Mapping of page URL to the set of crawled page URLs it links to.
        Pages without any internal link are absent from the map.
    """
    pages = list(pages)
    host = site_host(site_root)

    known: Dict[str, str] = {}
    for page in pages:
        try:
            known[normalize_url(page.url)] = page.url
        except ValueError:
            logger.warning(f"Ignoring page with malformed URL: {page.url!r}")

    adjacency: AdjacencyMap = {}
    total = len(pages)
    for processed, page in enumerate(pages, start=1):
        source = page.url
        targets = {
            known[target]
            for target in extract_links(page.body, page.url, host)
            if target in known
        }
        if targets:
            adjacency.setdefault(source, set()).update(targets)
        if on_progress:
            on_progress(processed, total)

    edge_count = sum(len(t) for t in adjacency.values())
    logger.info(f"Link graph built: {len(adjacency)} linking pages, {edge_count} internal edges")
    return adjacency


def to_serializable(adjacency: AdjacencyMap) -> Dict[str, List[str]]:
    """Adjacency map with sorted target lists, for reports and JSON."""
    return {source: sorted(targets) for source, targets in adjacency.items()}
