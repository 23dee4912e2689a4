"""Answer evaluator implementations."""

from .rule_based import (
    RuleBasedAnswerEvaluator,
    first_failure,
    is_passing,
    ordered_types,
    require_pass,
)
from .llm import LLMAnswerEvaluator
from .classifier import HeuristicQuestionClassifier, LLMQuestionClassifier
from .error_analysis import LLMErrorAnalyzer, basic_analysis

__all__ = [
    "RuleBasedAnswerEvaluator",
    "LLMAnswerEvaluator",
    "HeuristicQuestionClassifier",
    "LLMQuestionClassifier",
    "LLMErrorAnalyzer",
    "basic_analysis",
    "first_failure",
    "is_passing",
    "ordered_types",
    "require_pass",
]
