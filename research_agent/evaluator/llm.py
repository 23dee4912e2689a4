"""LLM-based answer evaluator using Claude to judge each criterion."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from research_agent.core.types import (
    AnswerAction,
    CompletenessAnalysis,
    EvaluationResponse,
    FreshnessAnalysis,
    KnowledgeItem,
    PluralityAnalysis,
)
from research_agent.evaluator import checks
from research_agent.evaluator.rule_based import RuleBasedAnswerEvaluator, ordered_types
from research_agent.knowledge.store import source_content
from research_agent.llm.model_config import ModelConfig
from research_agent.llm.protocol import LLMClient
from research_agent.prompts.research import (
    EVALUATOR_SYSTEM_PROMPTS,
    build_evaluator_prompt,
)

logger = logging.getLogger(__name__)

_BASE_PROPERTIES: dict[str, Any] = {
    "think": {
        "type": "string",
        "description": "Step-by-step reasoning for the verdict",
    },
    "pass": {
        "type": "boolean",
        "description": "True if the answer satisfies this criterion",
    },
    "improvement_plan": {
        "type": "string",
        "description": "If failing, concrete next steps that would fix the answer",
    },
}

_EXTRA_PROPERTIES: dict[str, dict[str, Any]] = {
    "freshness": {
        "days_ago": {"type": "number", "description": "Age in days of the oldest dated source"},
        "max_age_days": {"type": "number", "description": "Maximum acceptable age for this topic"},
    },
    "plurality": {
        "minimum_count_required": {"type": "integer", "description": "Items the question asks for"},
        "actual_count_provided": {"type": "integer", "description": "Distinct items the answer gives"},
    },
    "attribution": {
        "exact_quote": {"type": "string", "description": "First quote not found in its source"},
    },
    "completeness": {
        "aspects_expected": {"type": "string", "description": "Comma-separated aspects the question names"},
        "aspects_provided": {"type": "string", "description": "Comma-separated aspects the answer covers"},
    },
}


def evaluation_tool(eval_type: str) -> dict:
    """Tool definition for structured output of one criterion."""
    properties = dict(_BASE_PROPERTIES)
    properties.update(_EXTRA_PROPERTIES.get(eval_type, {}))
    return {
        "name": f"submit_{eval_type}_evaluation",
        "description": f"Submit the {eval_type} verdict for the answer",
        "input_schema": {
            "type": "object",
            "properties": properties,
            "required": ["think", "pass"],
        },
    }


class LLMAnswerEvaluator:
    """
    Evaluator that asks an LLM for a verdict on each criterion.

    Any LLM error or unusable response for a criterion falls back to the
    rule-based check for that criterion only. Criteria listed in
    ``deterministic_types`` always use the rule-based check. "strict" is
    always the conjunction of the other verdicts.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        model_config: ModelConfig | None = None,
        deterministic_types: Sequence[str] = ("attribution",),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize the LLM evaluator.

        Args:
            llm_client: LLM client for evaluation.
            model_config: Sampling settings; defaults to temperature 0.
            deterministic_types: Criteria that never go to the LLM.
            clock: Current-time source shared with the fallback checks.
        """
        self._llm = llm_client
        self._model_config = model_config or ModelConfig()
        self._deterministic = set(deterministic_types)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._fallback = RuleBasedAnswerEvaluator(clock=self._clock)

    def evaluate(
        self,
        question: str,
        candidate: AnswerAction,
        applicable_types: Sequence[str],
        knowledge: Sequence[KnowledgeItem],
    ) -> dict[str, EvaluationResponse]:
        verdicts: dict[str, EvaluationResponse] = {}
        for eval_type in ordered_types(applicable_types):
            if eval_type == "strict":
                continue
            if eval_type in self._deterministic:
                verdicts[eval_type] = self._fallback.check(eval_type, question, candidate, knowledge)
            else:
                verdicts[eval_type] = self._evaluate_one(eval_type, question, candidate, knowledge)

        if "strict" in applicable_types:
            verdicts["strict"] = checks.check_strict(verdicts)
        return verdicts

    def _evaluate_one(
        self,
        eval_type: str,
        question: str,
        candidate: AnswerAction,
        knowledge: Sequence[KnowledgeItem],
    ) -> EvaluationResponse:
        prompt = self._build_prompt(eval_type, question, candidate, knowledge)
        try:
            response = self._llm.complete_with_tools(
                messages=[{"role": "user", "content": prompt}],
                tools=[evaluation_tool(eval_type)],
                system=EVALUATOR_SYSTEM_PROMPTS[eval_type],
                tool_choice={"type": "any"},
                **self._model_config.to_llm_kwargs(),
            )
            parsed = self._parse_response(eval_type, response)
        except Exception as e:
            logger.warning(f"[EVAL] LLM {eval_type} check failed ({e}); using rule-based check")
            parsed = None
        if parsed is None:
            return self._fallback.check(eval_type, question, candidate, knowledge)
        return parsed

    def _build_prompt(
        self,
        eval_type: str,
        question: str,
        candidate: AnswerAction,
        knowledge: Sequence[KnowledgeItem],
    ) -> str:
        references = "\n".join(
            f'- "{ref.exact_quote}" ({ref.url}{", " + ref.date_time if ref.date_time else ""})'
            for ref in candidate.references
        )
        sources = "\n\n".join(
            f"[{url}]\n{source_content(knowledge, url)}"
            for url in dict.fromkeys(ref.url for ref in candidate.references)
        )
        return build_evaluator_prompt(
            eval_type=eval_type,
            question=question,
            answer=candidate.answer,
            references=references,
            sources=sources,
            now=self._clock().isoformat(),
        )

    def _parse_response(self, eval_type: str, response: dict) -> EvaluationResponse | None:
        """Parse the tool call into an EvaluationResponse, or None if unusable."""
        tool_calls = response.get("tool_calls", [])
        if not tool_calls:
            return None

        args = tool_calls[0].get("arguments", {})
        if isinstance(args, str):
            try:
                args = json.loads(args)
            except json.JSONDecodeError:
                return None
        if not isinstance(args, dict) or not isinstance(args.get("pass"), bool):
            return None

        freshness = plurality = completeness = None
        if eval_type == "freshness" and "days_ago" in args:
            freshness = FreshnessAnalysis(
                days_ago=float(args["days_ago"]),
                max_age_days=float(args["max_age_days"]) if "max_age_days" in args else None,
            )
        if eval_type == "plurality" and "minimum_count_required" in args:
            plurality = PluralityAnalysis(
                minimum_count_required=int(args["minimum_count_required"]),
                actual_count_provided=int(args.get("actual_count_provided", 0)),
            )
        if eval_type == "completeness" and "aspects_expected" in args:
            completeness = CompletenessAnalysis(
                aspects_expected=str(args["aspects_expected"]),
                aspects_provided=str(args.get("aspects_provided", "")),
            )

        return EvaluationResponse(
            passed=args["pass"],
            think=str(args.get("think", "")),
            type=eval_type,  # type: ignore[arg-type]
            freshness_analysis=freshness,
            plurality_analysis=plurality,
            completeness_analysis=completeness,
            exact_quote=args.get("exact_quote") or None,
            improvement_plan=args.get("improvement_plan") or None,
        )
