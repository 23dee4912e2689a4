"""Decide which evaluation criteria apply to a question."""

import json
import logging

from research_agent.evaluator import checks
from research_agent.llm.model_config import ModelConfig
from research_agent.llm.protocol import LLMClient
from research_agent.prompts.research import CLASSIFIER_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

_PLURAL_CUES = ("list ", "examples of", "which ones", "what are some", "name some", "top ")

CLASSIFIER_TOOL = {
    "name": "submit_applicable_checks",
    "description": "Submit which quality checks apply to the question",
    "input_schema": {
        "type": "object",
        "properties": {
            "think": {"type": "string", "description": "Brief reasoning"},
            "needs_definitive": {"type": "boolean"},
            "needs_freshness": {"type": "boolean"},
            "needs_plurality": {"type": "boolean"},
            "needs_completeness": {"type": "boolean"},
        },
        "required": [
            "needs_definitive",
            "needs_freshness",
            "needs_plurality",
            "needs_completeness",
        ],
    },
}


class HeuristicQuestionClassifier:
    """Keyword and pattern based classifier; always includes "definitive"."""

    def classify(self, question: str) -> tuple[str, ...]:
        types = ["definitive"]
        if checks.freshness_max_age(question) < checks.DEFAULT_MAX_AGE_DAYS:
            types.append("freshness")
        lowered = f"{question.lower()} "
        if checks.required_count(question) is not None or any(c in lowered for c in _PLURAL_CUES):
            types.append("plurality")
        if checks.question_aspects(question):
            types.append("completeness")
        return tuple(types)


class LLMQuestionClassifier:
    """Classifier that asks an LLM, falling back to the heuristic classifier."""

    def __init__(self, llm_client: LLMClient, model_config: ModelConfig | None = None) -> None:
        self._llm = llm_client
        self._model_config = model_config or ModelConfig(max_tokens=512)
        self._fallback = HeuristicQuestionClassifier()

    def classify(self, question: str) -> tuple[str, ...]:
        try:
            response = self._llm.complete_with_tools(
                messages=[{"role": "user", "content": f"**Question:** {question}"}],
                tools=[CLASSIFIER_TOOL],
                system=CLASSIFIER_SYSTEM_PROMPT,
                tool_choice={"type": "any"},
                **self._model_config.to_llm_kwargs(),
            )
        except Exception as e:
            logger.warning(f"[EVAL] Question classification failed ({e}); using heuristics")
            return self._fallback.classify(question)

        tool_calls = response.get("tool_calls", [])
        if not tool_calls:
            return self._fallback.classify(question)
        args = tool_calls[0].get("arguments", {})
        if isinstance(args, str):
            try:
                args = json.loads(args)
            except json.JSONDecodeError:
                return self._fallback.classify(question)

        types = [
            name
            for name in ("definitive", "freshness", "plurality", "completeness")
            if args.get(f"needs_{name}")
        ]
        logger.info(f"[EVAL] Applicable checks: {types}")
        return tuple(types)
