"""Core types and protocols for the research agent."""

from .types import (
    Reference,
    SearchAction,
    AnswerAction,
    ReflectAction,
    VisitAction,
    CodingAction,
    StepAction,
    action_from_dict,
    KnowledgeItem,
    EvaluationResponse,
    FreshnessAnalysis,
    PluralityAnalysis,
    CompletenessAnalysis,
    ErrorAnalysisResponse,
    SearchResult,
    BoostedSearchResult,
    FetchResult,
    CodingResult,
    Budget,
    SelectionContext,
    ResearchResult,
    EVALUATION_ORDER,
)
from .errors import (
    ResearchError,
    ExecutorFailure,
    EvaluationFailure,
    BudgetExhausted,
    CancellationRequested,
)
from .protocols import (
    ActionSelector,
    AnswerEvaluator,
    QuestionClassifier,
    ErrorAnalyzer,
    SearchExecutor,
    FetchExecutor,
    CodingExecutor,
)

__all__ = [
    "Reference",
    "SearchAction",
    "AnswerAction",
    "ReflectAction",
    "VisitAction",
    "CodingAction",
    "StepAction",
    "action_from_dict",
    "KnowledgeItem",
    "EvaluationResponse",
    "FreshnessAnalysis",
    "PluralityAnalysis",
    "CompletenessAnalysis",
    "ErrorAnalysisResponse",
    "SearchResult",
    "BoostedSearchResult",
    "FetchResult",
    "CodingResult",
    "Budget",
    "SelectionContext",
    "ResearchResult",
    "EVALUATION_ORDER",
    "ResearchError",
    "ExecutorFailure",
    "EvaluationFailure",
    "BudgetExhausted",
    "CancellationRequested",
    "ActionSelector",
    "AnswerEvaluator",
    "QuestionClassifier",
    "ErrorAnalyzer",
    "SearchExecutor",
    "FetchExecutor",
    "CodingExecutor",
]
