"""Knowledge accumulated during a research run."""

from .store import KnowledgeStore, find_answer, source_content
from .urls import URLPool, normalize_url, rank_urls

__all__ = [
    "KnowledgeStore",
    "find_answer",
    "source_content",
    "URLPool",
    "normalize_url",
    "rank_urls",
]
