"""URL reader backed by the Jina reader endpoint (r.jina.ai)."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Sequence

import requests

from research_agent.core.types import FetchResult

logger = logging.getLogger(__name__)


class JinaReader:
    """
    Fetch executor that turns pages into text via r.jina.ai.

    URLs of one call are fetched concurrently, bounded by ``max_workers``.
    A failed URL yields a FetchResult with ``error`` set; the batch never
    fails as a whole.
    """

    URL = "https://r.jina.ai/"

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 30.0,
        max_workers: int = 4,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key or os.environ.get("JINA_API_KEY")
        self.timeout = timeout
        self.max_workers = max_workers
        self.session = session or requests.Session()

    def fetch(self, urls: Sequence[str]) -> list[FetchResult]:
        if not urls:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(urls))) as pool:
            results = list(pool.map(self._fetch_one, urls))
        ok = sum(1 for r in results if r.ok)
        logger.info(f"[VISIT] Read {ok}/{len(results)} URLs")
        return results

    def _fetch_one(self, url: str) -> FetchResult:
        headers = {"Accept": "application/json", "X-With-Links-Summary": "true"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            resp = self.session.post(
                self.URL, json={"url": url}, headers=headers, timeout=self.timeout
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"[VISIT] Failed to read {url}: {e}")
            return FetchResult(url=url, error=str(e))

        data: dict[str, Any] = payload.get("data") or {}
        content = (data.get("content") or "").strip()
        if not content:
            return FetchResult(url=url, error="Empty content")
        return FetchResult(
            url=url,
            title=data.get("title") or "",
            content=content,
            links=self._parse_links(data.get("links")),
        )

    @staticmethod
    def _parse_links(raw: Any) -> tuple[tuple[str, str], ...]:
        """Links arrive either as {anchor: url} or as [[anchor, url], ...]."""
        if isinstance(raw, dict):
            return tuple((str(anchor), str(href)) for anchor, href in raw.items())
        if isinstance(raw, list):
            return tuple(
                (str(pair[0]), str(pair[1]))
                for pair in raw
                if isinstance(pair, (list, tuple)) and len(pair) == 2
            )
        return ()
