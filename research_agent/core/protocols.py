"""Protocol definitions for pluggable components."""

from typing import Protocol, Sequence

from .types import (
    AnswerAction,
    Budget,
    CodingResult,
    ErrorAnalysisResponse,
    EvaluationResponse,
    FetchResult,
    KnowledgeItem,
    SearchResult,
    SelectionContext,
    StepAction,
)


class ActionSelector(Protocol):
    """Protocol for choosing the next step."""

    def select_action(
        self,
        question: str,
        knowledge: Sequence[KnowledgeItem],
        budget: Budget,
        context: SelectionContext | None = None,
    ) -> StepAction:
        """Return exactly one action. Must not mutate its inputs."""
        ...


class AnswerEvaluator(Protocol):
    """Protocol for gating a candidate answer."""

    def evaluate(
        self,
        question: str,
        candidate: AnswerAction,
        applicable_types: Sequence[str],
        knowledge: Sequence[KnowledgeItem],
    ) -> dict[str, EvaluationResponse]:
        """Return one response per applicable criterion."""
        ...


class QuestionClassifier(Protocol):
    """Protocol for deciding which criteria apply to a question."""

    def classify(self, question: str) -> tuple[str, ...]:
        """Return the evaluation types that apply, excluding "strict"."""
        ...


class ErrorAnalyzer(Protocol):
    """Protocol for explaining why an answer was rejected."""

    def analyze(
        self,
        question: str,
        candidate: AnswerAction,
        failure: EvaluationResponse,
        knowledge: Sequence[KnowledgeItem],
    ) -> ErrorAnalysisResponse:
        ...


class SearchExecutor(Protocol):
    """Protocol for web search backends."""

    def search(self, queries: Sequence[str]) -> list[SearchResult]:
        """
        Run the queries and return normalized results.

        Raises ExecutorFailure on transport errors.
        """
        ...


class FetchExecutor(Protocol):
    """Protocol for URL readers."""

    def fetch(self, urls: Sequence[str]) -> list[FetchResult]:
        """Return one FetchResult per URL, in order. Never raises for a single bad URL."""
        ...


class CodingExecutor(Protocol):
    """Protocol for code generation and execution."""

    def run(self, issue: str, knowledge: Sequence[KnowledgeItem]) -> CodingResult:
        ...
