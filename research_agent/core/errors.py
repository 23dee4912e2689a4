"""Exceptions raised inside the research loop."""

from typing import Any


class ResearchError(Exception):
    """Base class for research loop errors."""

    pass


class ExecutorFailure(ResearchError):
    """A search, fetch or coding collaborator was unreachable or errored."""

    def __init__(self, executor: str, message: str, cause: Exception | None = None):
        super().__init__(f"{executor} failed: {message}")
        self.executor = executor
        self.cause = cause


class EvaluationFailure(ResearchError):
    """
    A candidate answer did not pass every selected criterion.

    Not an error condition: the controller catches it and runs another
    iteration steered by ``response.improvement_plan``.
    """

    def __init__(self, response: Any):
        super().__init__(f"{response.type or 'evaluation'} check failed: {response.think}")
        self.response = response


class BudgetExhausted(ResearchError):
    """Token or action budget ran out."""

    pass


class CancellationRequested(ResearchError):
    """The caller cancelled the run or its deadline passed."""

    pass
