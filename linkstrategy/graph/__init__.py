"""
Link Graph Package

- links: internal link extraction and adjacency map construction
- authority: fixed-iteration PageRank-style authority scoring
"""

from .links import (
    AdjacencyMap,
    build_link_graph,
    extract_links,
    normalize_url,
    site_host,
    to_serializable,
)
from .authority import (
    AuthorityScore,
    DAMPING_FACTOR,
    ITERATIONS,
    calculate_internal_authority,
    compute_raw_scores,
    normalize_scores,
)

__all__ = [
    "AdjacencyMap",
    "build_link_graph",
    "extract_links",
    "normalize_url",
    "site_host",
    "to_serializable",
    "AuthorityScore",
    "DAMPING_FACTOR",
    "ITERATIONS",
    "calculate_internal_authority",
    "compute_raw_scores",
    "normalize_scores",
]
