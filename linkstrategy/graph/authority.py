"""
Internal Authority Scorer

PageRank-style power iteration over the internal link graph:

    new_score[p] = (1 - d) + d * sum(score[q] / outdegree(q) for q in inbound(p))

with d = 0.85 and exactly 20 synchronous passes from an initial score of 1.0.
Sources with zero outdegree contribute nothing. Final scores are divided by
the maximum, multiplied by 10 and rounded to two decimals (all zeros when the
maximum is 0).

This is a fixed-iteration approximation. Inbound lists are built in page
order so floating-point summation order, and therefore the output, is
identical across runs for the same input.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from ..collector.models import Page
from .links import AdjacencyMap

logger = logging.getLogger(__name__)

DAMPING_FACTOR = 0.85
ITERATIONS = 20


@dataclass(frozen=True)
class AuthorityScore:
    """Normalized 0-10 internal authority of one page."""
    url: str
    title: str
    score: float

    @classmethod
    def from_diagnostic(cls, data: Dict[str, object]) -> "AuthorityScore":
        return cls(
            url=str(data["url"]),
            title=str(data.get("title") or data["url"]),
            score=float(data.get("internal_authority_score", data.get("score", 0.0)) or 0.0),
        )

    def to_diagnostic(self) -> Dict[str, object]:
        return {
            "url": self.url,
            "title": self.title,
            "internal_authority_score": self.score,
        }


def compute_raw_scores(
    adjacency: AdjacencyMap,
    urls: Sequence[str],
    on_progress: Optional[Callable[[int, int], None]] = None,
) -> List[float]:
    """
    Run the power iteration and return un-normalized scores aligned with `urls`.

    Adjacency entries whose source or target is not in `urls` are ignored.
    A repeated URL is one node; every occurrence gets that node's score.
    """
    unique = list(dict.fromkeys(urls))
    index = {url: i for i, url in enumerate(unique)}
    n = len(unique)

    inbound: List[List[int]] = [[] for _ in range(n)]
    outdegree = [0] * n

    for source in unique:
        targets = adjacency.get(source)
        if not targets:
            continue
        source_idx = index[source]
        outdegree[source_idx] = len(targets)
        for target in sorted(targets):
            target_idx = index.get(target)
            if target_idx is not None:
                inbound[target_idx].append(source_idx)

    scores = [1.0] * n
    for iteration in range(ITERATIONS):
        new_scores = [0.0] * n
        for j in range(n):
            rank_sum = 0.0
            for q in inbound[j]:
                if outdegree[q] > 0:
                    rank_sum += scores[q] / outdegree[q]
            new_scores[j] = (1 - DAMPING_FACTOR) + DAMPING_FACTOR * rank_sum
        scores = new_scores
        if on_progress:
            on_progress(iteration + 1, ITERATIONS)

    return [scores[index[url]] for url in urls]


def normalize_scores(raw: Sequence[float]) -> List[float]:
    """Scale so the maximum is 10.0, rounded to two decimals."""
    max_score = max(raw, default=0.0)
    if max_score <= 0:
        return [0.0] * len(raw)
    return [round(score / max_score * 10, 2) for score in raw]


def calculate_internal_authority(
    adjacency: AdjacencyMap,
    pages: Sequence[Page],
    on_progress: Optional[Callable[[int, int], None]] = None,
) -> List[AuthorityScore]:
    """
    Compute the normalized authority score of every page.

    Args:
        adjacency: Internal link graph from build_link_graph()
        pages: All crawled pages, including ones absent from the graph
        on_progress: Optional callback receiving (iteration, ITERATIONS)

    Returns:
        One AuthorityScore per distinct page URL, in first-seen order
    """
    unique: Dict[str, Page] = {}
    for page in pages:
        unique.setdefault(page.url, page)
    if len(unique) < len(pages):
        logger.warning(f"Ignoring {len(pages) - len(unique)} duplicate page URLs")
    pages = list(unique.values())

    urls = [page.url for page in pages]
    normalized = normalize_scores(compute_raw_scores(adjacency, urls, on_progress))

    results = [
        AuthorityScore(url=page.url, title=page.title, score=score)
        for page, score in zip(pages, normalized)
    ]
    if results:
        top = max(results, key=lambda r: r.score)
        logger.info(f"Authority computed for {len(results)} pages (top: {top.url} = {top.score})")
    return results
