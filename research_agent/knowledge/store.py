"""Append-only knowledge store for one research run."""

import logging
from typing import Iterator, Sequence

from research_agent.core.text import overlap
from research_agent.core.types import KnowledgeItem
from research_agent.knowledge.urls import normalize_url

logger = logging.getLogger(__name__)


class KnowledgeStore:
    """
    Ordered, append-only collection of KnowledgeItems.

    The store is the only memory the selector and evaluator see. There is
    no delete or update API: corrections are appended as new items with a
    later ``updated`` timestamp, so history stays auditable. Items are
    frozen dataclasses, so earlier entries can never change.
    """

    def __init__(self, items: Sequence[KnowledgeItem] = ()) -> None:
        self._items: list[KnowledgeItem] = []
        self.extend(items)

    def append(self, item: KnowledgeItem) -> None:
        """Append a single item."""
        if not isinstance(item, KnowledgeItem):
            raise TypeError(f"Expected KnowledgeItem, got {type(item).__name__}")
        self._items.append(item)
        logger.debug(f"[KNOWLEDGE] +{item.type}: {item.question[:80]}")

    def extend(self, items: Sequence[KnowledgeItem]) -> None:
        for item in items:
            self.append(item)

    def snapshot(self) -> tuple[KnowledgeItem, ...]:
        """Return all items in insertion order."""
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[KnowledgeItem]:
        return iter(tuple(self._items))

    def by_type(self, *types: str) -> list[KnowledgeItem]:
        return [item for item in self._items if item.type in types]

    def source_content(self, url: str) -> str:
        return source_content(self._items, url)

    def find_answer(self, question: str, min_overlap: float = 0.6) -> KnowledgeItem | None:
        return find_answer(self._items, question, min_overlap)


def source_content(knowledge: Sequence[KnowledgeItem], url: str) -> str:
    """
    Collect everything known to have been said by ``url``.

    That is the text of ``url`` items that reference it plus every quote
    previously recorded against it.
    """
    target = normalize_url(url) or url
    parts: list[str] = []
    for item in knowledge:
        if item.type == "url" and target in {normalize_url(u) or u for u in item.urls}:
            parts.append(item.answer)
        for ref in item.references:
            if (normalize_url(ref.url) or ref.url) == target and ref.exact_quote:
                parts.append(ref.exact_quote)
    return "\n".join(parts)


def find_answer(
    knowledge: Sequence[KnowledgeItem], question: str, min_overlap: float = 0.6
) -> KnowledgeItem | None:
    """
    Find the latest qa or coding item whose question matches ``question``.

    A match needs ``min_overlap`` of the item's content words to appear in
    the question.
    """
    best: KnowledgeItem | None = None
    best_score = 0.0
    for item in knowledge:
        if item.type not in ("qa", "coding", "chat-history") or not item.answer.strip():
            continue
        score = overlap(item.question, question)
        if score >= min_overlap and score >= best_score:
            best, best_score = item, score
    return best
