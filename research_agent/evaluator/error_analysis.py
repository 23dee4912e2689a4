"""Post-mortem analysis of rejected answers."""

import json
import logging
from typing import Sequence

from research_agent.core.types import (
    AnswerAction,
    ErrorAnalysisResponse,
    EvaluationResponse,
    KnowledgeItem,
)
from research_agent.llm.model_config import ModelConfig
from research_agent.llm.protocol import LLMClient
from research_agent.prompts.research import ERROR_ANALYSIS_SYSTEM_PROMPT, format_knowledge

logger = logging.getLogger(__name__)

ERROR_ANALYSIS_TOOL = {
    "name": "submit_error_analysis",
    "description": "Submit the analysis of why the answer was rejected",
    "input_schema": {
        "type": "object",
        "properties": {
            "recap": {"type": "string", "description": "Summary of the steps taken so far"},
            "blame": {"type": "string", "description": "The step or assumption at fault"},
            "improvement": {"type": "string", "description": "What to do differently next"},
            "questionsToAnswer": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Sub-questions whose answers would close the gap",
            },
        },
        "required": ["recap", "blame", "improvement"],
    },
}


def basic_analysis(candidate: AnswerAction, failure: EvaluationResponse) -> ErrorAnalysisResponse:
    """Analysis built from the failed verdict alone."""
    return ErrorAnalysisResponse(
        recap=f"Answered: {candidate.answer[:200]}",
        blame=failure.think,
        improvement=failure.improvement_plan or f"Address the failed {failure.type} check.",
    )


class LLMErrorAnalyzer:
    """Ask an LLM to explain a rejection; falls back to ``basic_analysis``."""

    def __init__(self, llm_client: LLMClient, model_config: ModelConfig | None = None) -> None:
        self._llm = llm_client
        self._model_config = model_config or ModelConfig(max_tokens=1024)

    def analyze(
        self,
        question: str,
        candidate: AnswerAction,
        failure: EvaluationResponse,
        knowledge: Sequence[KnowledgeItem],
    ) -> ErrorAnalysisResponse:
        prompt = "\n\n".join(
            [
                f"**Question:** {question}",
                f"**Rejected answer:** {candidate.answer}",
                f"**Failed check ({failure.type}):** {failure.think}",
                "## Knowledge\n\n" + format_knowledge(knowledge, max_chars=500),
            ]
        )
        try:
            response = self._llm.complete_with_tools(
                messages=[{"role": "user", "content": prompt}],
                tools=[ERROR_ANALYSIS_TOOL],
                system=ERROR_ANALYSIS_SYSTEM_PROMPT,
                tool_choice={"type": "any"},
                **self._model_config.to_llm_kwargs(),
            )
            tool_calls = response.get("tool_calls", [])
            if not tool_calls:
                return basic_analysis(candidate, failure)
            args = tool_calls[0].get("arguments", {})
            if isinstance(args, str):
                args = json.loads(args)
        except Exception as e:
            logger.warning(f"[EVAL] Error analysis failed ({e})")
            return basic_analysis(candidate, failure)

        questions = args.get("questionsToAnswer") or args.get("questions_to_answer") or []
        return ErrorAnalysisResponse(
            recap=str(args.get("recap", "")),
            blame=str(args.get("blame", "")),
            improvement=str(args.get("improvement", "")),
            questions_to_answer=tuple(str(q) for q in questions if str(q).strip()),
        )
