"""Tests for the append-only knowledge store."""

import pytest

from research_agent.core.types import KnowledgeItem, Reference
from research_agent.knowledge.store import KnowledgeStore, find_answer, source_content


def _qa(question: str, answer: str, **kwargs) -> KnowledgeItem:
    return KnowledgeItem(question=question, answer=answer, type="qa", **kwargs)


class TestKnowledgeStore:
    """Tests for KnowledgeStore."""

    def test_starts_with_initial_items(self, france_knowledge) -> None:
        store = KnowledgeStore(france_knowledge)
        assert len(store) == 1
        assert store.snapshot() == tuple(france_knowledge)

    def test_append_preserves_order(self) -> None:
        store = KnowledgeStore()
        first = _qa("one", "1")
        second = _qa("two", "2")
        store.append(first)
        store.append(second)
        assert store.snapshot() == (first, second)

    def test_append_rejects_non_items(self) -> None:
        store = KnowledgeStore()
        with pytest.raises(TypeError):
            store.append({"question": "q"})  # type: ignore[arg-type]

    def test_snapshot_is_stable(self) -> None:
        store = KnowledgeStore([_qa("one", "1")])
        before = store.snapshot()
        store.append(_qa("two", "2"))
        after = store.snapshot()
        assert len(before) == 1
        assert after[: len(before)] == before

    def test_by_type(self) -> None:
        store = KnowledgeStore(
            [
                _qa("q", "a"),
                KnowledgeItem(question="s", answer="x", type="side-info"),
            ]
        )
        assert [k.type for k in store.by_type("side-info")] == ["side-info"]


class TestSourceContent:
    """Tests for source_content."""

    def test_collects_page_text_and_quotes(self) -> None:
        knowledge = [
            KnowledgeItem(
                question="page",
                answer="Full page text.",
                type="url",
                references=(Reference("Full page", "https://a.com/x"),),
            ),
            KnowledgeItem(
                question="search",
                answer="-",
                type="side-info",
                references=(Reference("A snippet.", "https://a.com/x"),),
            ),
            KnowledgeItem(
                question="other",
                answer="Unrelated.",
                type="url",
                references=(Reference("Unrelated", "https://b.com"),),
            ),
        ]
        content = source_content(knowledge, "https://a.com/x")
        assert "Full page text." in content
        assert "A snippet." in content
        assert "Unrelated" not in content

    def test_matches_normalized_urls(self) -> None:
        knowledge = [
            KnowledgeItem(
                question="page",
                answer="Body.",
                type="url",
                references=(Reference("Body", "https://Example.com/page/"),),
            )
        ]
        assert "Body." in source_content(knowledge, "https://example.com/page#section")

    def test_unknown_url(self) -> None:
        assert source_content([], "https://nowhere.test") == ""


class TestFindAnswer:
    """Tests for find_answer."""

    def test_finds_matching_qa(self, france_knowledge) -> None:
        item = find_answer(france_knowledge, "What is the capital of France?")
        assert item is not None
        assert item.answer == "Paris"

    def test_ignores_side_info(self) -> None:
        knowledge = [KnowledgeItem(question="capital of France", answer="Paris", type="side-info")]
        assert find_answer(knowledge, "What is the capital of France?") is None

    def test_prefers_latest_equal_match(self) -> None:
        knowledge = [_qa("capital of France", "Lyon"), _qa("capital of France", "Paris")]
        assert find_answer(knowledge, "capital of France").answer == "Paris"

    def test_no_match_below_overlap(self, france_knowledge) -> None:
        assert find_answer(france_knowledge, "population of Germany") is None
