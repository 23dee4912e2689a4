"""Web search executors over HTTP search APIs."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Sequence

import requests

from research_agent.core.errors import ExecutorFailure
from research_agent.core.types import SearchResult

logger = logging.getLogger(__name__)

USER_AGENT = "research-agent/0.1"


class HTTPSearchExecutor:
    """
    Base class for search backends.

    Queries of one call run concurrently and results keep query order.
    A query whose request fails is logged and skipped; ExecutorFailure is
    raised only when every query failed.
    """

    name = "search"
    api_key_env: str | None = None

    def __init__(
        self,
        api_key: str | None = None,
        max_results: int = 10,
        timeout: float = 20.0,
        max_workers: int = 3,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key or (os.environ.get(self.api_key_env) if self.api_key_env else None)
        if self.api_key_env and not self.api_key:
            raise ValueError(f"{self.api_key_env} is required for the {self.name} backend")
        self.max_results = max_results
        self.timeout = timeout
        self.max_workers = max_workers
        self.session = session or requests.Session()

    def search(self, queries: Sequence[str]) -> list[SearchResult]:
        queries = [q for q in queries if q.strip()]
        if not queries:
            return []

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(queries))) as pool:
            outcomes = list(pool.map(self._search_safely, queries))

        errors = [o for o in outcomes if isinstance(o, Exception)]
        if len(errors) == len(outcomes):
            raise ExecutorFailure(self.name, str(errors[0]), cause=errors[0])

        results: list[SearchResult] = []
        for outcome in outcomes:
            if not isinstance(outcome, Exception):
                results.extend(outcome)
        logger.info(f"[SEARCH] {self.name}: {len(queries)} queries, {len(results)} results")
        return results

    def _search_safely(self, query: str) -> list[SearchResult] | Exception:
        try:
            return self._search_one(query)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"[SEARCH] {self.name} query {query!r} failed: {e}")
            return e

    def _search_one(self, query: str) -> list[SearchResult]:
        raise NotImplementedError


class BraveSearch(HTTPSearchExecutor):
    """Brave Search web API."""

    name = "brave"
    api_key_env = "BRAVE_API_KEY"
    URL = "https://api.search.brave.com/res/v1/web/search"

    def _search_one(self, query: str) -> list[SearchResult]:
        headers = {
            "Accept": "application/json",
            "X-Subscription-Token": self.api_key or "",
            "User-Agent": USER_AGENT,
        }
        params = {"q": query, "count": self.max_results}
        resp = self.session.get(self.URL, headers=headers, params=params, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        results = []
        for item in (data.get("web", {}) or {}).get("results", [])[: self.max_results]:
            if not item.get("url"):
                continue
            results.append(
                SearchResult(
                    title=item.get("title") or "",
                    url=item["url"],
                    description=item.get("description") or "",
                    date=item.get("page_age") or item.get("age"),
                )
            )
        return results


class SerperSearch(HTTPSearchExecutor):
    """
    Serper (Google) search API.

    The knowledge-graph panel, when present, becomes an extra leading
    result; its raw attributes are kept in ``last_knowledge_graph``.
    """

    name = "serper"
    api_key_env = "SERPER_API_KEY"
    URL = "https://google.serper.dev/search"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.last_knowledge_graph: dict[str, Any] = {}

    def _search_one(self, query: str) -> list[SearchResult]:
        headers = {"X-API-KEY": self.api_key or "", "Content-Type": "application/json"}
        payload = {"q": query, "num": self.max_results}
        resp = self.session.post(self.URL, json=payload, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()

        results = []
        graph = data.get("knowledgeGraph") or {}
        if graph.get("website"):
            self.last_knowledge_graph = dict(graph)
            attributes = "; ".join(f"{k}: {v}" for k, v in (graph.get("attributes") or {}).items())
            description = " ".join(filter(None, [graph.get("description", ""), attributes]))
            results.append(
                SearchResult(
                    title=graph.get("title") or "",
                    url=graph["website"],
                    description=description,
                )
            )
        for item in data.get("organic", [])[: self.max_results]:
            if not item.get("link"):
                continue
            results.append(
                SearchResult(
                    title=item.get("title") or "",
                    url=item["link"],
                    description=item.get("snippet") or "",
                    date=item.get("date"),
                )
            )
        return results


class JinaSearch(HTTPSearchExecutor):
    """Jina search endpoint (s.jina.ai) in JSON mode."""

    name = "jina"
    api_key_env = "JINA_API_KEY"
    URL = "https://s.jina.ai/"

    def _search_one(self, query: str) -> list[SearchResult]:
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "X-Respond-With": "no-content",
        }
        resp = self.session.get(self.URL, params={"q": query}, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        results = []
        for item in (data.get("data") or [])[: self.max_results]:
            if not item.get("url"):
                continue
            results.append(
                SearchResult(
                    title=item.get("title") or "",
                    url=item["url"],
                    description=item.get("description") or "",
                    date=item.get("date"),
                )
            )
        return results


SEARCH_BACKENDS: dict[str, type[HTTPSearchExecutor]] = {
    "brave": BraveSearch,
    "serper": SerperSearch,
    "jina": JinaSearch,
}


def create_search_executor(backend: str = "jina", **kwargs: Any) -> HTTPSearchExecutor:
    """
    Create a search executor by backend name.

    Raises:
        ValueError: If the backend is unknown or its API key is missing.
    """
    try:
        cls = SEARCH_BACKENDS[backend]
    except KeyError:
        raise ValueError(
            f"Unknown search backend: {backend}. Must be one of {sorted(SEARCH_BACKENDS)}"
        ) from None
    return cls(**kwargs)
