"""Tests for HTTP search executors and the URL reader."""

import pytest
import requests
from unittest.mock import Mock, patch

from research_agent.core.errors import ExecutorFailure
from research_agent.executor.reader import JinaReader
from research_agent.executor.search import (
    BraveSearch,
    JinaSearch,
    SerperSearch,
    create_search_executor,
)


def _response(payload: dict) -> Mock:
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestBraveSearch:
    """Tests for BraveSearch."""

    def test_parses_web_results(self) -> None:
        session = Mock()
        session.get.return_value = _response(
            {
                "web": {
                    "results": [
                        {
                            "title": "France",
                            "url": "https://en.wikipedia.org/wiki/France",
                            "description": "Capital: Paris",
                            "page_age": "2025-05-01T00:00:00",
                        },
                        {"title": "no url"},
                    ]
                }
            }
        )
        search = BraveSearch(api_key="k", session=session)

        [result] = search.search(["capital of france"])

        assert result.url == "https://en.wikipedia.org/wiki/France"
        assert result.date == "2025-05-01T00:00:00"
        kwargs = session.get.call_args[1]
        assert kwargs["headers"]["X-Subscription-Token"] == "k"
        assert kwargs["params"]["q"] == "capital of france"

    def test_requires_api_key(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ValueError, match="BRAVE_API_KEY"):
                BraveSearch()


class TestSerperSearch:
    """Tests for SerperSearch."""

    def test_knowledge_graph_leads(self) -> None:
        session = Mock()
        session.post.return_value = _response(
            {
                "knowledgeGraph": {
                    "title": "Paris",
                    "website": "https://www.paris.fr",
                    "description": "Capital of France",
                    "attributes": {"Population": "2.1 million"},
                },
                "organic": [
                    {"title": "Paris", "link": "https://en.wikipedia.org/wiki/Paris", "snippet": "City"}
                ],
            }
        )
        search = SerperSearch(api_key="k", session=session)

        results = search.search(["paris"])

        assert [r.url for r in results] == ["https://www.paris.fr", "https://en.wikipedia.org/wiki/Paris"]
        assert "Population: 2.1 million" in results[0].description
        assert search.last_knowledge_graph["title"] == "Paris"
        assert session.post.call_args[1]["json"] == {"q": "paris", "num": 10}


class TestJinaSearch:
    """Tests for JinaSearch and the shared concurrency behaviour."""

    def test_keeps_query_order(self) -> None:
        session = Mock()
        session.get.side_effect = lambda url, params, headers, timeout: _response(
            {"data": [{"title": params["q"], "url": f"https://{params['q']}.com", "description": ""}]}
        )
        search = JinaSearch(api_key="k", session=session)

        results = search.search(["alpha", "beta", "gamma"])

        assert [r.title for r in results] == ["alpha", "beta", "gamma"]

    def test_partial_failure_keeps_other_results(self) -> None:
        def fake_get(url, params, headers, timeout):
            if params["q"] == "bad":
                raise requests.ConnectionError("boom")
            return _response({"data": [{"title": "ok", "url": "https://ok.com"}]})

        session = Mock()
        session.get.side_effect = fake_get
        search = JinaSearch(api_key="k", session=session)

        results = search.search(["bad", "good"])

        assert [r.url for r in results] == ["https://ok.com"]

    def test_all_queries_failing_raises(self) -> None:
        session = Mock()
        session.get.side_effect = requests.Timeout("slow")
        search = JinaSearch(api_key="k", session=session)

        with pytest.raises(ExecutorFailure, match="jina"):
            search.search(["a", "b"])

    def test_blank_queries_skipped(self) -> None:
        session = Mock()
        assert JinaSearch(api_key="k", session=session).search(["", "  "]) == []
        session.get.assert_not_called()


class TestCreateSearchExecutor:
    def test_known_backend(self) -> None:
        assert isinstance(create_search_executor("serper", api_key="k"), SerperSearch)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Unknown search backend"):
            create_search_executor("altavista")


class TestJinaReader:
    """Tests for JinaReader."""

    def test_reads_content_and_links(self) -> None:
        session = Mock()
        session.post.return_value = _response(
            {
                "data": {
                    "title": "France",
                    "content": "Paris is the capital of France.",
                    "links": {"Paris": "https://en.wikipedia.org/wiki/Paris"},
                }
            }
        )
        reader = JinaReader(api_key="k", session=session)

        [result] = reader.fetch(["https://en.wikipedia.org/wiki/France"])

        assert result.ok
        assert result.content == "Paris is the capital of France."
        assert result.links == (("Paris", "https://en.wikipedia.org/wiki/Paris"),)
        kwargs = session.post.call_args[1]
        assert kwargs["json"] == {"url": "https://en.wikipedia.org/wiki/France"}
        assert kwargs["headers"]["Authorization"] == "Bearer k"

    def test_failure_is_per_url(self) -> None:
        def fake_post(url, json, headers, timeout):
            if json["url"] == "https://down.test":
                raise requests.HTTPError("502 Bad Gateway")
            return _response({"data": {"content": "fine"}})

        session = Mock()
        session.post.side_effect = fake_post
        reader = JinaReader(api_key="k", session=session)

        results = reader.fetch(["https://down.test", "https://up.test"])

        assert [r.url for r in results] == ["https://down.test", "https://up.test"]
        assert not results[0].ok
        assert "502" in results[0].error
        assert results[1].content == "fine"

    def test_empty_content_is_an_error(self) -> None:
        session = Mock()
        session.post.return_value = _response({"data": {"content": "   "}})
        [result] = JinaReader(api_key="k", session=session).fetch(["https://a.com"])
        assert result.error == "Empty content"

    def test_link_pairs(self) -> None:
        assert JinaReader._parse_links([["a", "https://a.com"], ["bad"]]) == (("a", "https://a.com"),)
        assert JinaReader._parse_links(None) == ()

    def test_no_urls(self) -> None:
        assert JinaReader(api_key="k", session=Mock()).fetch([]) == []
