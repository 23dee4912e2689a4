"""Shared test fixtures."""

from datetime import datetime, timezone

import pytest

from research_agent.agent.config import ResearchConfig
from research_agent.agent.runner import ResearchAgent
from research_agent.agent.selector import RuleBasedActionSelector
from research_agent.core.types import (
    AnswerAction,
    Budget,
    KnowledgeItem,
    Reference,
    SearchResult,
)
from research_agent.evaluator.rule_based import RuleBasedAnswerEvaluator
from research_agent.executor.mock import (
    MockCodingExecutor,
    MockFetchExecutor,
    MockSearchExecutor,
)

FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_clock():
    """Clock that always returns FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def france_reference() -> Reference:
    return Reference(
        exact_quote="Paris is the capital of France",
        url="https://example.com/a",
    )


@pytest.fixture
def france_knowledge(france_reference: Reference) -> list[KnowledgeItem]:
    """Knowledge holding a sourced answer to the capital-of-France question."""
    return [
        KnowledgeItem(
            question="capital of France",
            answer="Paris",
            type="qa",
            references=(france_reference,),
        )
    ]


@pytest.fixture
def paris_answer(france_reference: Reference) -> AnswerAction:
    return AnswerAction(
        think="The knowledge says so.",
        answer="Paris",
        references=(france_reference,),
    )


@pytest.fixture
def roomy_budget() -> Budget:
    """A budget far from its floor."""
    return Budget(tokens_used=0, token_budget=100_000, actions_taken=0, max_actions=20)


@pytest.fixture
def floor_budget() -> Budget:
    """A budget already below its floor."""
    return Budget(tokens_used=95_000, token_budget=100_000, actions_taken=3, max_actions=20)


@pytest.fixture
def search_results() -> list[SearchResult]:
    return [
        SearchResult(
            title="France - Wikipedia",
            url="https://en.wikipedia.org/wiki/France",
            description="France is a country whose capital is Paris.",
            date="2025-05-20",
        ),
        SearchResult(
            title="Paris facts",
            url="https://example.org/paris",
            description="Paris, the capital of France, has 2.1 million residents.",
        ),
    ]


@pytest.fixture
def mock_search(search_results: list[SearchResult]) -> MockSearchExecutor:
    return MockSearchExecutor(default=search_results)


@pytest.fixture
def mock_fetcher() -> MockFetchExecutor:
    return MockFetchExecutor(
        pages={
            "https://en.wikipedia.org/wiki/France": (
                "France is a country in Western Europe. "
                "Paris is the capital of France. It is the largest city."
            ),
            "https://example.org/paris": "Paris, the capital of France, has 2.1 million residents.",
        }
    )


@pytest.fixture
def mock_coder() -> MockCodingExecutor:
    return MockCodingExecutor(["42"])


@pytest.fixture
def rule_evaluator(fixed_clock) -> RuleBasedAnswerEvaluator:
    return RuleBasedAnswerEvaluator(clock=fixed_clock)


@pytest.fixture
def make_agent(mock_search, mock_fetcher, mock_coder, rule_evaluator, fixed_clock):
    """Factory for agents built from mocks and rule-based components."""

    def _make(**kwargs) -> ResearchAgent:
        config = kwargs.pop("config", None) or ResearchConfig(
            max_actions=10, evaluation_types=("definitive", "attribution")
        )
        params = {
            "selector": RuleBasedActionSelector(),
            "evaluator": rule_evaluator,
            "search": mock_search,
            "fetcher": mock_fetcher,
            "coder": mock_coder,
            "config": config,
            "clock": fixed_clock,
        }
        params.update(kwargs)
        return ResearchAgent(**params)

    return _make
