"""Prompt templates for research, evaluation and code generation."""

from dataclasses import dataclass, field
from typing import Sequence

from research_agent.core.text import clip
from research_agent.core.types import KnowledgeItem, SelectionContext

ACTION_DESCRIPTIONS = {
    "search": (
        "Run web searches. Use short keyword queries, not full sentences. "
        "Never repeat a query that was already run."
    ),
    "visit": (
        "Read the full content of URLs. Choose URLs from the candidate list "
        "that are most likely to contain the answer."
    ),
    "reflect": (
        "Break the problem into at most a few focused sub-questions that must "
        "be answered first. Do not repeat earlier sub-questions."
    ),
    "coding": (
        "Solve a computational sub-problem (arithmetic, counting, date math, "
        "data processing) by writing and running Python."
    ),
    "answer": (
        "Answer the current question. Quote sources verbatim in references; "
        "each exactQuote must be copied from the visited content of its URL."
    ),
}


@dataclass
class ResearchPrompt:
    """Configurable system prompt for choosing the next research step."""

    allowed_actions: Sequence[str] = tuple(ACTION_DESCRIPTIONS)
    forced_answer: bool = False
    include_guidelines: bool = True

    additional_constraints: list[str] = field(default_factory=list)

    def build(self) -> str:
        """Build the complete system prompt."""
        sections = [self._base_instructions()]

        if self.forced_answer:
            sections.append(self._forced_answer())
        else:
            sections.append(self._actions())

        if self.include_guidelines:
            sections.append(self._guidelines())

        sections.append(self._output_requirements())

        return "\n\n".join(sections)

    def _base_instructions(self) -> str:
        return """You are a research agent answering a question by iterating:
search the web, read pages, reflect on gaps, run code and finally answer.

All you know is the knowledge listed in the user message. Base every claim on it."""

    def _forced_answer(self) -> str:
        return """## Budget exhausted

You must answer now with the best answer the knowledge supports.
Be concrete. Do not say that you could not find the answer."""

    def _actions(self) -> str:
        parts = ["## Available actions", ""]
        for name in self.allowed_actions:
            parts.append(f"- **{name}**: {ACTION_DESCRIPTIONS[name]}")
        return "\n".join(parts)

    def _guidelines(self) -> str:
        return """## Guidelines

1. Answer only when the knowledge supports a concrete, definitive answer
2. When an earlier answer was rejected, follow its improvement plan
3. Prefer visiting promising URLs over running more searches
4. Prefer sources with publication dates for time-sensitive questions"""

    def _output_requirements(self) -> str:
        constraints = [
            "Call exactly one tool",
            "Explain your reasoning briefly in the `think` field",
        ]
        constraints.extend(self.additional_constraints)
        parts = ["## Output Requirements", ""]
        parts.extend(f"- {c}" for c in constraints)
        return "\n".join(parts)


def build_research_prompt(
    allowed_actions: Sequence[str],
    forced_answer: bool = False,
    additional_constraints: list[str] | None = None,
) -> str:
    """Build the action-selection system prompt."""
    prompt = ResearchPrompt(
        allowed_actions=tuple(allowed_actions),
        forced_answer=forced_answer,
        additional_constraints=additional_constraints or [],
    )
    return prompt.build()


def format_knowledge(knowledge: Sequence[KnowledgeItem], max_chars: int = 2000) -> str:
    """Render knowledge items as numbered blocks for a user message."""
    if not knowledge:
        return "(no knowledge yet)"
    blocks = []
    for i, item in enumerate(knowledge, 1):
        lines = [f"### {i}. [{item.type}] {item.question}", clip(item.answer, max_chars)]
        if item.source_code:
            lines.append(f"```python\n{item.source_code}\n```")
        for ref in item.references[:5]:
            date = f" ({ref.date_time})" if ref.date_time else ""
            lines.append(f"- {ref.url}{date}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def format_context(question: str, knowledge: Sequence[KnowledgeItem], context: SelectionContext | None) -> str:
    """User message for the action selector."""
    parts = [f"**Current question:** {question}"]
    if context is not None:
        if context.original_question != question:
            parts.append(f"**Original question:** {context.original_question}")
        if context.pending_questions:
            parts.append("**Open sub-questions:**\n" + "\n".join(f"- {q}" for q in context.pending_questions))
        if context.past_queries:
            parts.append("**Queries already run:** " + "; ".join(context.past_queries))
        if context.rejected_answers:
            parts.append("**Rejected answers:**\n" + "\n".join(f"- {a}" for a in context.rejected_answers))
        if context.candidate_urls:
            parts.append(
                "**Unvisited URLs (ranked):**\n"
                + "\n".join(
                    f"- {c.url} | {c.result.title} | score {c.final_score:.2f}"
                    for c in context.candidate_urls[:10]
                )
            )
    parts.append("## Knowledge\n\n" + format_knowledge(knowledge))
    return "\n\n".join(parts)


EVALUATOR_SYSTEM_PROMPTS = {
    "definitive": """You check whether an answer is definitive.
An answer fails if it refuses, hedges, says the information is unavailable,
or offers several options without committing to one.""",
    "freshness": """You check whether an answer is fresh enough for its topic.
Decide the maximum acceptable age of sources in days for the question's topic
(real-time finance: hours; news: days; software versions: a month; stable
facts: a year or more), then compare it with every dated reference; the oldest one decides.""",
    "plurality": """You check whether an answer provides as many items as the question asks for.
Count the distinct items the question requires and the distinct items the answer provides.""",
    "attribution": """You check whether an answer is supported by its sources.
Every quote must appear in the source content given for its URL, and every
sentence of the answer must be backed by a quote. Report the first quote that
cannot be found or the first sentence no quote supports.""",
    "completeness": """You check whether an answer addresses every aspect of a
multi-part question. List the aspects the question names and the aspects the
answer covers.""",
}


def build_evaluator_prompt(
    eval_type: str,
    question: str,
    answer: str,
    references: str,
    sources: str,
    now: str,
) -> str:
    """User message for one evaluation criterion."""
    parts = [
        f"**Question:** {question}",
        f"**Answer:** {answer}",
        f"**References:**\n{references or '(none)'}",
    ]
    if eval_type == "attribution":
        parts.append(f"**Source content:**\n{sources or '(none)'}")
    if eval_type == "freshness":
        parts.append(f"**Current time:** {now}")
    parts.append("Use the submit tool to give your verdict.")
    return "\n\n".join(parts)


CLASSIFIER_SYSTEM_PROMPT = """You decide which quality checks apply to a question.

- definitive: almost always, unless the question is opinion-based
- freshness: the answer depends on recent or time-sensitive information
- plurality: the question asks for several items, or a specific number of them
- completeness: the question names several aspects that must all be addressed

Use the submit tool to report your decision."""


ERROR_ANALYSIS_SYSTEM_PROMPT = """You review a research attempt whose answer was rejected.

Recap the steps taken, blame the specific step or assumption that led to the bad
answer, propose a concrete improvement, and list sub-questions whose answers
would fix the gap. Use the submit tool."""


CODER_SYSTEM_PROMPT = """You are a Python code generator that solves a computational problem.

Write self-contained Python using only the standard library plus math,
statistics, datetime, json, re, collections and itertools. Values you need are
given in the context below; do not read files or access the network.

Print the final result with print(). Return ONLY Python code wrapped in
```python and ``` markers."""
