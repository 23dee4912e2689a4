"""Rule-based answer evaluator and helpers for combining verdicts."""

import logging
from datetime import datetime, timezone
from typing import Callable, Sequence

from research_agent.core.errors import EvaluationFailure
from research_agent.core.types import (
    EVALUATION_ORDER,
    AnswerAction,
    EvaluationResponse,
    KnowledgeItem,
)
from research_agent.evaluator import checks

logger = logging.getLogger(__name__)


def ordered_types(applicable_types: Sequence[str]) -> list[str]:
    """
    De-duplicate criteria and put them in canonical order.

    Raises:
        ValueError: If an unknown criterion is named.
    """
    unknown = [t for t in applicable_types if t not in EVALUATION_ORDER]
    if unknown:
        raise ValueError(f"Unknown evaluation type(s): {', '.join(unknown)}")
    return [t for t in EVALUATION_ORDER if t in applicable_types]


def first_failure(verdicts: dict[str, EvaluationResponse]) -> EvaluationResponse | None:
    """Return the first failing verdict in canonical order, or None."""
    for eval_type in EVALUATION_ORDER:
        verdict = verdicts.get(eval_type)
        if verdict is not None and not verdict.passed:
            return verdict
    return None


def is_passing(verdicts: dict[str, EvaluationResponse]) -> bool:
    return all(v.passed for v in verdicts.values())


def require_pass(verdicts: dict[str, EvaluationResponse]) -> None:
    """Raise EvaluationFailure for the first failing criterion."""
    failure = first_failure(verdicts)
    if failure is not None:
        raise EvaluationFailure(failure)


class RuleBasedAnswerEvaluator:
    """
    Evaluator that applies deterministic checks for each criterion.

    The same inputs and the same clock always give the same verdicts.
    ``clock`` defaults to the current UTC time; pass a fixed callable
    in tests.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def evaluate(
        self,
        question: str,
        candidate: AnswerAction,
        applicable_types: Sequence[str],
        knowledge: Sequence[KnowledgeItem],
    ) -> dict[str, EvaluationResponse]:
        """Run each applicable check and return one verdict per criterion."""
        verdicts: dict[str, EvaluationResponse] = {}
        for eval_type in ordered_types(applicable_types):
            if eval_type == "strict":
                continue
            verdicts[eval_type] = self.check(eval_type, question, candidate, knowledge)

        if "strict" in applicable_types:
            verdicts["strict"] = checks.check_strict(verdicts)

        for eval_type, verdict in verdicts.items():
            logger.debug(f"[EVAL] {eval_type}: {'pass' if verdict.passed else 'fail'}")
        return verdicts

    def check(
        self,
        eval_type: str,
        question: str,
        candidate: AnswerAction,
        knowledge: Sequence[KnowledgeItem],
    ) -> EvaluationResponse:
        """Run a single non-strict criterion."""
        if eval_type == "definitive":
            return checks.check_definitive(candidate)
        if eval_type == "freshness":
            return checks.check_freshness(question, candidate, self._clock())
        if eval_type == "plurality":
            return checks.check_plurality(question, candidate)
        if eval_type == "attribution":
            return checks.check_attribution(candidate, knowledge)
        if eval_type == "completeness":
            return checks.check_completeness(question, candidate)
        raise ValueError(f"Unknown evaluation type: {eval_type!r}")
