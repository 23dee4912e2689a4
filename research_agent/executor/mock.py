"""Mock executors for deterministic testing."""

from typing import Sequence

from research_agent.core.errors import ExecutorFailure
from research_agent.core.types import CodingResult, FetchResult, KnowledgeItem, SearchResult


class MockSearchExecutor:
    """
    Search executor that returns predetermined results per query.

    Queries without a registered response return ``default``. Set
    ``fail=True`` to simulate a transport error on every call.
    """

    def __init__(
        self,
        responses: dict[str, list[SearchResult]] | None = None,
        default: list[SearchResult] | None = None,
        fail: bool = False,
    ) -> None:
        self._responses = responses or {}
        self._default = default or []
        self.fail = fail
        self.calls: list[tuple[str, ...]] = []

    def add_response(self, query: str, results: list[SearchResult]) -> None:
        self._responses[query] = results

    def search(self, queries: Sequence[str]) -> list[SearchResult]:
        self.calls.append(tuple(queries))
        if self.fail:
            raise ExecutorFailure("mock-search", "simulated transport error")
        results: list[SearchResult] = []
        for query in queries:
            results.extend(self._responses.get(query, self._default))
        return results

    @property
    def call_count(self) -> int:
        return len(self.calls)


class MockFetchExecutor:
    """
    Fetch executor backed by a URL-to-content mapping.

    Unknown URLs, and URLs listed in ``errors``, produce a failed
    FetchResult.
    """

    def __init__(
        self,
        pages: dict[str, str] | None = None,
        errors: dict[str, str] | None = None,
        links: dict[str, list[tuple[str, str]]] | None = None,
    ) -> None:
        self._pages = pages or {}
        self._errors = errors or {}
        self._links = links or {}
        self.calls: list[tuple[str, ...]] = []

    def add_page(self, url: str, content: str) -> None:
        self._pages[url] = content

    def fetch(self, urls: Sequence[str]) -> list[FetchResult]:
        self.calls.append(tuple(urls))
        results = []
        for url in urls:
            if url in self._errors:
                results.append(FetchResult(url=url, error=self._errors[url]))
            elif url in self._pages:
                results.append(
                    FetchResult(
                        url=url,
                        title=url,
                        content=self._pages[url],
                        links=tuple(self._links.get(url, [])),
                    )
                )
            else:
                results.append(FetchResult(url=url, error="404 Not Found"))
        return results

    @property
    def call_count(self) -> int:
        return len(self.calls)


class MockCodingExecutor:
    """Coding executor that returns predetermined outputs in order."""

    def __init__(self, outputs: list[str | CodingResult] | None = None) -> None:
        self._outputs = outputs or ["42"]
        self.calls: list[str] = []

    def run(self, issue: str, knowledge: Sequence[KnowledgeItem]) -> CodingResult:
        output = self._outputs[len(self.calls) % len(self._outputs)]
        self.calls.append(issue)
        if isinstance(output, CodingResult):
            return output
        return CodingResult(think="mock", code=f"print({output!r})", output=output)

    @property
    def call_count(self) -> int:
        return len(self.calls)
