"""URL bookkeeping and ranking for visit actions."""

import logging
from typing import Sequence
from urllib.parse import urlsplit, urlunsplit

import pandas as pd

from research_agent.core.text import overlap
from research_agent.core.types import BoostedSearchResult, SearchResult

logger = logging.getLogger(__name__)

FREQ_FACTOR = 0.5
HOSTNAME_FACTOR = 0.5
PATH_FACTOR = 0.4
RERANK_FACTOR = 0.8
LINK_WEIGHT = 0.5  # links discovered inside pages count less than search hits


def normalize_url(url: str) -> str | None:
    """
    Canonicalize a URL for de-duplication.

    Lowercases scheme and host, drops fragments and a trailing slash.
    Returns None for anything that is not http(s).
    """
    url = (url or "").strip()
    if not url:
        return None
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        return None
    path = parts.path.rstrip("/") if parts.path not in ("", "/") else ""
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ""))


def _path_prefix(url: str) -> str:
    parts = urlsplit(url)
    segments = [s for s in parts.path.split("/") if s]
    return f"{parts.netloc}/{segments[0]}" if segments else parts.netloc


def rank_urls(
    results: Sequence[SearchResult],
    question: str,
    exclude: set[str] | frozenset[str] = frozenset(),
) -> list[BoostedSearchResult]:
    """
    Score and order candidate URLs.

    Each URL is boosted by how often it was returned, how common its host
    and first path segment are among all candidates, and how many of the
    question's content words its title and description contain.
    """
    rows = []
    for result in results:
        url = normalize_url(result.url)
        if url is None:
            continue
        rows.append(
            {
                "url": url,
                "result": result,
                "weight": result.weight,
                "hostname": urlsplit(url).netloc,
                "path_prefix": _path_prefix(url),
            }
        )
    if not rows:
        return []

    frame = pd.DataFrame(rows)
    frame["freq_boost"] = frame.groupby("url")["weight"].transform("sum") * FREQ_FACTOR
    host_share = frame["hostname"].value_counts(normalize=True)
    path_share = frame["path_prefix"].value_counts(normalize=True)
    frame["hostname_boost"] = frame["hostname"].map(host_share) * HOSTNAME_FACTOR
    frame["path_boost"] = frame["path_prefix"].map(path_share) * PATH_FACTOR

    frame = frame.drop_duplicates("url", keep="first")
    frame = frame[~frame["url"].isin(list(exclude))].copy()
    if frame.empty:
        return []

    frame["rerank_boost"] = frame["result"].map(
        lambda r: overlap(question, f"{r.title} {r.description}") * RERANK_FACTOR
    )
    frame["final_score"] = frame[
        ["freq_boost", "hostname_boost", "path_boost", "rerank_boost"]
    ].sum(axis=1)
    frame = frame.sort_values("final_score", ascending=False, kind="stable")

    return [
        BoostedSearchResult(
            result=SearchResult(
                title=row.result.title,
                url=row.url,
                description=row.result.description,
                date=row.result.date,
                weight=row.result.weight,
            ),
            freq_boost=float(row.freq_boost),
            hostname_boost=float(row.hostname_boost),
            path_boost=float(row.path_boost),
            rerank_boost=float(row.rerank_boost),
            final_score=float(row.final_score),
        )
        for row in frame.itertuples(index=False)
    ]


class URLPool:
    """
    Every URL the run has heard of, plus which were visited or failed.

    Owned by the controller; selectors only see ranked snapshots.
    """

    def __init__(self) -> None:
        self._results: list[SearchResult] = []
        self._visited: list[str] = []
        self._bad: list[str] = []

    def add_results(self, results: Sequence[SearchResult]) -> int:
        """Add search hits. Returns how many URLs were not known before."""
        known = self.known_urls()
        self._results.extend(results)
        fresh = {normalize_url(r.url) for r in results} - known - {None}
        return len(fresh)

    def add_links(self, links: Sequence[tuple[str, str]]) -> int:
        """Add (anchor, url) links discovered while reading a page."""
        return self.add_results(
            [SearchResult(title=anchor, url=url, description="", weight=LINK_WEIGHT)
             for anchor, url in links]
        )

    def mark_visited(self, url: str) -> None:
        url = normalize_url(url) or url
        if url not in self._visited:
            self._visited.append(url)

    def mark_bad(self, url: str) -> None:
        url = normalize_url(url) or url
        if url not in self._bad:
            self._bad.append(url)
            logger.info(f"[VISIT] Marked bad URL: {url}")

    def known_urls(self) -> set[str]:
        return {u for u in (normalize_url(r.url) for r in self._results) if u}

    @property
    def visited(self) -> list[str]:
        return list(self._visited)

    @property
    def bad(self) -> list[str]:
        return list(self._bad)

    def ranked(self, question: str, limit: int | None = None) -> list[BoostedSearchResult]:
        """Unvisited, non-bad URLs, best first."""
        ranked = rank_urls(self._results, question, exclude=set(self._visited) | set(self._bad))
        return ranked[:limit] if limit is not None else ranked

    def date_for(self, url: str) -> str | None:
        """Publication date reported by search for ``url``, if any."""
        target = normalize_url(url)
        for result in self._results:
            if result.date and normalize_url(result.url) == target:
                return result.date
        return None
