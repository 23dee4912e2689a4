"""Action selectors: choose the next research step."""

import json
import logging
import re
from typing import Any, Sequence

from research_agent.core.text import overlap, sentences, tokens
from research_agent.core.types import (
    AnswerAction,
    Budget,
    CodingAction,
    KnowledgeItem,
    Reference,
    ReflectAction,
    SearchAction,
    SelectionContext,
    StepAction,
    VisitAction,
    action_from_dict,
)
from research_agent.evaluator.checks import question_aspects
from research_agent.knowledge.store import find_answer
from research_agent.llm.model_config import ModelConfig
from research_agent.llm.protocol import LLMClient
from research_agent.prompts.research import (
    ACTION_DESCRIPTIONS,
    build_research_prompt,
    format_context,
)

logger = logging.getLogger(__name__)

NO_ANSWER = "No answer could be established from the gathered knowledge."

COMPUTE_RE = re.compile(
    r"\b(?:calculate|compute|how many (?:days|hours|minutes|years)|sum of|average of|"
    r"mean of|difference between|percentage|ratio of|convert|multiply|divided by)\b"
    r"|\d+(?:\.\d+)?\s*[-+*/^]\s*\d+",
    re.IGNORECASE,
)


def _sentences(text: str) -> list[str]:
    return [s for s in sentences(text) if len(s) > 3]


def best_available_answer(
    question: str, knowledge: Sequence[KnowledgeItem], think: str | None = None
) -> AnswerAction:
    """
    Build a non-final answer from what the knowledge already holds.

    Prefers a recorded answer to the question; otherwise quotes the
    sentence from gathered page or search content that shares the most
    words with the question.
    """
    item = find_answer(knowledge, question, min_overlap=0.5)
    if item is not None:
        return AnswerAction(
            think=think or "Reusing the recorded answer to this question.",
            answer=item.answer,
            references=item.references,
        )

    best: tuple[float, str, Reference | None] = (0.0, "", None)
    for item in knowledge:
        if item.type not in ("url", "side-info", "qa", "chat-history"):
            continue
        if item.type == "url":
            candidates = [(s, item.references[0] if item.references else None) for s in _sentences(item.answer)]
        else:
            candidates = [(ref.exact_quote, ref) for ref in item.references if ref.exact_quote]
        for sentence, ref in candidates:
            score = overlap(question, sentence)
            if score > best[0]:
                quote_ref = (
                    Reference(exact_quote=sentence, url=ref.url, date_time=ref.date_time)
                    if ref is not None
                    else None
                )
                best = (score, sentence, quote_ref)

    score, sentence, ref = best
    if not sentence:
        return AnswerAction(think=think or "No usable knowledge was gathered.", answer=NO_ANSWER)
    return AnswerAction(
        think=think or f"Best matching evidence (overlap {score:.2f}).",
        answer=sentence,
        references=(ref,) if ref is not None else (),
    )


def candidate_queries(question: str, knowledge: Sequence[KnowledgeItem]) -> list[str]:
    """Keyword queries for a question, most specific first."""
    words = tokens(question)
    queries = [question.strip().rstrip("?")]
    if words:
        queries.append(" ".join(words))
    for item in reversed(knowledge):
        # latest rejection feedback steers one extra query
        if item.type == "side-info" and item.question.startswith("Why was"):
            extra = [w for w in tokens(item.answer) if w not in words][:4]
            if extra:
                queries.append(" ".join(words[:4] + extra))
            break
    return list(dict.fromkeys(q for q in queries if q))


class RuleBasedActionSelector:
    """
    Deterministic selection policy.

    In order: forced answer when the budget is below its floor; a recorded
    answer that was not rejected; coding for a computation not yet done;
    visiting ranked URLs; reflecting on a compound question; searching
    with new queries; finally the best available answer.
    """

    def __init__(self, max_urls: int = 3, max_queries: int = 3, max_subquestions: int = 3) -> None:
        self.max_urls = max_urls
        self.max_queries = max_queries
        self.max_subquestions = max_subquestions

    def select_action(
        self,
        question: str,
        knowledge: Sequence[KnowledgeItem],
        budget: Budget,
        context: SelectionContext | None = None,
    ) -> StepAction:
        ctx = context or SelectionContext(original_question=question)

        if budget.below_floor:
            return best_available_answer(
                question, knowledge, think="Budget is nearly spent; answering with what is known."
            )

        if ctx.allows("answer"):
            item = find_answer(knowledge, question)
            if item is not None and item.answer not in ctx.rejected_answers:
                return AnswerAction(
                    think="Knowledge already contains an answer to this question.",
                    answer=item.answer,
                    references=item.references,
                )

        if ctx.allows("coding") and COMPUTE_RE.search(question):
            done = any(k.type == "coding" and overlap(k.question, question) >= 0.6 for k in knowledge)
            if not done:
                return CodingAction(think="The question needs a computation.", coding_issue=question)

        if ctx.allows("visit"):
            urls = [c.url for c in ctx.candidate_urls if c.url not in ctx.visited_urls]
            if urls:
                return VisitAction(
                    think="Reading the highest ranked unvisited URLs.",
                    url_targets=tuple(urls[: self.max_urls]),
                )

        if ctx.allows("reflect") and question == ctx.original_question:
            asked = set(ctx.pending_questions) | {k.question for k in knowledge}
            subquestions = [
                f"What is the {label}? (context: {question})"
                for label, _ in question_aspects(question)
            ]
            fresh = [q for q in subquestions if q not in asked][: self.max_subquestions]
            if fresh:
                return ReflectAction(
                    think="The question has several aspects; answering them separately.",
                    questions_to_answer=tuple(fresh),
                )

        if ctx.allows("search"):
            queries = [q for q in candidate_queries(question, knowledge) if q not in ctx.past_queries]
            if queries:
                return SearchAction(
                    think="Searching for evidence.",
                    search_requests=tuple(queries[: self.max_queries]),
                )

        return best_available_answer(question, knowledge)


def _string_array(description: str) -> dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "description": description}


_THINK = {"type": "string", "description": "Why this action is the best next step"}

ACTION_TOOLS: dict[str, dict] = {
    "search": {
        "name": "search",
        "description": ACTION_DESCRIPTIONS["search"],
        "input_schema": {
            "type": "object",
            "properties": {"think": _THINK, "searchRequests": _string_array("Keyword queries")},
            "required": ["think", "searchRequests"],
        },
    },
    "visit": {
        "name": "visit",
        "description": ACTION_DESCRIPTIONS["visit"],
        "input_schema": {
            "type": "object",
            "properties": {"think": _THINK, "URLTargets": _string_array("URLs to read")},
            "required": ["think", "URLTargets"],
        },
    },
    "reflect": {
        "name": "reflect",
        "description": ACTION_DESCRIPTIONS["reflect"],
        "input_schema": {
            "type": "object",
            "properties": {"think": _THINK, "questionsToAnswer": _string_array("Sub-questions")},
            "required": ["think", "questionsToAnswer"],
        },
    },
    "coding": {
        "name": "coding",
        "description": ACTION_DESCRIPTIONS["coding"],
        "input_schema": {
            "type": "object",
            "properties": {
                "think": _THINK,
                "codingIssue": {"type": "string", "description": "The problem to solve with code"},
            },
            "required": ["think", "codingIssue"],
        },
    },
    "answer": {
        "name": "answer",
        "description": ACTION_DESCRIPTIONS["answer"],
        "input_schema": {
            "type": "object",
            "properties": {
                "think": _THINK,
                "answer": {"type": "string", "description": "The answer in plain text"},
                "references": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "exactQuote": {"type": "string"},
                            "url": {"type": "string"},
                            "dateTime": {"type": "string"},
                        },
                        "required": ["exactQuote", "url"],
                    },
                },
            },
            "required": ["think", "answer"],
        },
    },
}


class LLMActionSelector:
    """
    Selector that lets an LLM choose the next action via tool use.

    Only tools for allowed actions are offered; a forced answer offers the
    answer tool alone. Unusable output or a provider error falls back to
    the rule-based selector.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        model_config: ModelConfig | None = None,
        fallback: RuleBasedActionSelector | None = None,
    ) -> None:
        self._llm = llm_client
        self._model_config = model_config or ModelConfig(temperature=0.2, max_tokens=4096)
        self._fallback = fallback or RuleBasedActionSelector()

    def select_action(
        self,
        question: str,
        knowledge: Sequence[KnowledgeItem],
        budget: Budget,
        context: SelectionContext | None = None,
    ) -> StepAction:
        ctx = context or SelectionContext(original_question=question)
        forced = budget.below_floor
        allowed = ["answer"] if forced else [a for a in ACTION_TOOLS if ctx.allows(a)]
        if not allowed:
            allowed = ["answer"]

        try:
            response = self._llm.complete_with_tools(
                messages=[{"role": "user", "content": format_context(question, knowledge, ctx)}],
                tools=[ACTION_TOOLS[a] for a in allowed],
                system=build_research_prompt(allowed, forced_answer=forced),
                tool_choice={"type": "any"},
                **self._model_config.to_llm_kwargs(),
            )
            action = self._parse_response(response, allowed)
        except Exception as e:
            logger.warning(f"[STEP] Action selection failed ({e}); using rule-based policy")
            action = None

        if action is None:
            return self._fallback.select_action(question, knowledge, budget, ctx)
        return action

    def _parse_response(self, response: dict, allowed: list[str]) -> StepAction | None:
        tool_calls = response.get("tool_calls", [])
        if not tool_calls:
            return None
        call = tool_calls[0]
        name = call.get("name")
        if name not in allowed:
            logger.warning(f"[STEP] Model chose disallowed action {name!r}")
            return None

        args = call.get("arguments", {})
        if isinstance(args, str):
            try:
                args = json.loads(args)
            except json.JSONDecodeError:
                return None
        if not isinstance(args, dict):
            return None

        try:
            action = action_from_dict({**args, "action": name})
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"[STEP] Could not parse {name} action: {e}")
            return None

        if isinstance(action, SearchAction) and not action.search_requests:
            return None
        if isinstance(action, VisitAction) and not action.url_targets:
            return None
        if isinstance(action, ReflectAction) and not action.questions_to_answer:
            return None
        if isinstance(action, CodingAction) and not action.coding_issue.strip():
            return None
        if isinstance(action, AnswerAction) and not action.answer.strip():
            return None
        return action
