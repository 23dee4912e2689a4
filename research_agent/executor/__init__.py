"""Search, fetch and coding executors."""

from .mock import MockCodingExecutor, MockFetchExecutor, MockSearchExecutor
from .search import (
    BraveSearch,
    HTTPSearchExecutor,
    JinaSearch,
    SerperSearch,
    create_search_executor,
)
from .reader import JinaReader
from .coding import SandboxCodingExecutor

__all__ = [
    "MockCodingExecutor",
    "MockFetchExecutor",
    "MockSearchExecutor",
    "BraveSearch",
    "HTTPSearchExecutor",
    "JinaSearch",
    "SerperSearch",
    "create_search_executor",
    "JinaReader",
    "SandboxCodingExecutor",
]
