"""
Content Collection Package

Collectors return the published documents of a site and the body of a
single document. Both implementations expose the same two coroutines:

- list_published_pages(site_root, on_progress=None) -> List[Page]
- get_page_body(url) -> str
"""

from .models import Page
from .wordpress import WordPressCollector, CollectorError
from .sitemap import SitemapCollector

__all__ = [
    "Page",
    "WordPressCollector",
    "SitemapCollector",
    "CollectorError",
]
