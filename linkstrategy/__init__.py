"""
Linkstrategy Authority Engine

Analyzes a website's internal link structure and search performance data to
produce prioritized linking and content recommendations:
1. Collects published pages from the site (WordPress REST API or sitemap)
2. Builds the internal link graph and ranks pages by internal authority
3. Ranks pages by unexploited search traffic (opportunity)
4. Runs a multi-phase Claude pipeline (clusters, link suggestions, content gaps,
   topical authority roadmaps) and streams progress events to the caller
"""

__version__ = "0.1.0"
