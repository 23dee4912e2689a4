"""Core dataclasses for the research agent."""

from dataclasses import dataclass, field
from typing import Any, Literal, Union

ActionName = Literal["search", "answer", "reflect", "visit", "coding"]
KnowledgeType = Literal["qa", "side-info", "chat-history", "url", "coding"]
EvaluationType = Literal[
    "definitive", "freshness", "plurality", "attribution", "completeness", "strict"
]
Termination = Literal["accepted", "budget_exhausted", "forced_answer", "cancelled"]

ACTION_NAMES: tuple[str, ...] = ("search", "answer", "reflect", "visit", "coding")
KNOWLEDGE_TYPES: tuple[str, ...] = ("qa", "side-info", "chat-history", "url", "coding")

# Canonical criterion order; "strict" is the terminal gate and always last.
EVALUATION_ORDER: tuple[str, ...] = (
    "definitive",
    "freshness",
    "plurality",
    "attribution",
    "completeness",
    "strict",
)


@dataclass(frozen=True)
class Reference:
    """A quote backing a claim, with the URL it came from."""

    exact_quote: str
    url: str
    date_time: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"exactQuote": self.exact_quote, "url": self.url}
        if self.date_time:
            data["dateTime"] = self.date_time
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Reference":
        return cls(
            exact_quote=str(data.get("exactQuote", data.get("exact_quote", ""))),
            url=str(data.get("url", "")),
            date_time=data.get("dateTime", data.get("date_time")) or None,
        )


# --- Step actions -----------------------------------------------------------
#
# Each variant carries a fixed ``action`` discriminant. ``think`` is the
# rationale for choosing the action and never drives control flow.


@dataclass(frozen=True)
class SearchAction:
    """Run web searches for the given queries."""

    think: str
    search_requests: tuple[str, ...]
    action: Literal["search"] = field(default="search", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "think": self.think,
            "searchRequests": list(self.search_requests),
        }


@dataclass(frozen=True)
class AnswerAction:
    """Commit to an answer, optionally backed by references."""

    think: str
    answer: str
    references: tuple[Reference, ...] = ()
    is_final: bool = False
    md_answer: str | None = None
    action: Literal["answer"] = field(default="answer", init=False)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "action": self.action,
            "think": self.think,
            "answer": self.answer,
            "references": [ref.to_dict() for ref in self.references],
            "isFinal": self.is_final,
        }
        if self.md_answer is not None:
            data["mdAnswer"] = self.md_answer
        return data


@dataclass(frozen=True)
class ReflectAction:
    """Decompose the problem into sub-questions."""

    think: str
    questions_to_answer: tuple[str, ...]
    action: Literal["reflect"] = field(default="reflect", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "think": self.think,
            "questionsToAnswer": list(self.questions_to_answer),
        }


@dataclass(frozen=True)
class VisitAction:
    """Fetch and read the given URLs."""

    think: str
    url_targets: tuple[str, ...]
    action: Literal["visit"] = field(default="visit", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "think": self.think,
            "URLTargets": list(self.url_targets),
        }


@dataclass(frozen=True)
class CodingAction:
    """Solve a computational sub-problem by writing and running code."""

    think: str
    coding_issue: str
    action: Literal["coding"] = field(default="coding", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "think": self.think,
            "codingIssue": self.coding_issue,
        }


StepAction = Union[SearchAction, AnswerAction, ReflectAction, VisitAction, CodingAction]


def _str_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    return tuple(str(v) for v in value if str(v).strip())


def action_from_dict(data: dict[str, Any]) -> StepAction:
    """
    Build a StepAction from its wire form.

    Accepts the camelCase keys produced by ``to_dict`` as well as snake_case
    field names.

    Raises:
        ValueError: If the ``action`` discriminant is missing or unknown.
    """
    kind = data.get("action")
    think = str(data.get("think", ""))

    if kind == "search":
        return SearchAction(
            think=think,
            search_requests=_str_tuple(
                data.get("searchRequests", data.get("search_requests"))
            ),
        )
    if kind == "answer":
        refs = data.get("references") or []
        return AnswerAction(
            think=think,
            answer=str(data.get("answer", "")),
            references=tuple(
                r if isinstance(r, Reference) else Reference.from_dict(r) for r in refs
            ),
            is_final=bool(data.get("isFinal", data.get("is_final", False))),
            md_answer=data.get("mdAnswer", data.get("md_answer")),
        )
    if kind == "reflect":
        return ReflectAction(
            think=think,
            questions_to_answer=_str_tuple(
                data.get("questionsToAnswer", data.get("questions_to_answer"))
            ),
        )
    if kind == "visit":
        return VisitAction(
            think=think,
            url_targets=_str_tuple(data.get("URLTargets", data.get("url_targets"))),
        )
    if kind == "coding":
        return CodingAction(
            think=think,
            coding_issue=str(data.get("codingIssue", data.get("coding_issue", ""))),
        )
    raise ValueError(f"Unknown action type: {kind!r}")


# --- Knowledge --------------------------------------------------------------


@dataclass(frozen=True)
class KnowledgeItem:
    """
    A durable fact gathered during a research run.

    Immutable once created. ``source_code`` is only meaningful for
    ``coding`` items.
    """

    question: str
    answer: str
    type: KnowledgeType
    references: tuple[Reference, ...] = ()
    updated: str | None = None
    source_code: str | None = None

    def __post_init__(self) -> None:
        if self.type not in KNOWLEDGE_TYPES:
            raise ValueError(f"Unknown knowledge type: {self.type!r}")
        if self.source_code is not None and self.type != "coding":
            raise ValueError("source_code is only allowed on coding items")

    @property
    def urls(self) -> tuple[str, ...]:
        return tuple(ref.url for ref in self.references if ref.url)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "question": self.question,
            "answer": self.answer,
            "type": self.type,
            "references": [ref.to_dict() for ref in self.references],
        }
        if self.updated:
            data["updated"] = self.updated
        if self.source_code is not None:
            data["sourceCode"] = self.source_code
        return data


# --- Evaluation -------------------------------------------------------------


@dataclass(frozen=True)
class FreshnessAnalysis:
    days_ago: float
    max_age_days: float | None = None


@dataclass(frozen=True)
class PluralityAnalysis:
    minimum_count_required: int
    actual_count_provided: int


@dataclass(frozen=True)
class CompletenessAnalysis:
    aspects_expected: str
    aspects_provided: str


@dataclass(frozen=True)
class EvaluationResponse:
    """Verdict of a single evaluation criterion for one candidate answer."""

    passed: bool
    think: str
    type: EvaluationType | None = None
    freshness_analysis: FreshnessAnalysis | None = None
    plurality_analysis: PluralityAnalysis | None = None
    completeness_analysis: CompletenessAnalysis | None = None
    exact_quote: str | None = None
    improvement_plan: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"pass": self.passed, "think": self.think}
        if self.type:
            data["type"] = self.type
        if self.freshness_analysis:
            data["freshness_analysis"] = {
                "days_ago": self.freshness_analysis.days_ago,
                "max_age_days": self.freshness_analysis.max_age_days,
            }
        if self.plurality_analysis:
            data["plurality_analysis"] = {
                "minimum_count_required": self.plurality_analysis.minimum_count_required,
                "actual_count_provided": self.plurality_analysis.actual_count_provided,
            }
        if self.completeness_analysis:
            data["completeness_analysis"] = {
                "aspects_expected": self.completeness_analysis.aspects_expected,
                "aspects_provided": self.completeness_analysis.aspects_provided,
            }
        if self.exact_quote:
            data["exactQuote"] = self.exact_quote
        if self.improvement_plan:
            data["improvement_plan"] = self.improvement_plan
        return data


@dataclass(frozen=True)
class CodeGenResponse:
    think: str
    code: str


@dataclass(frozen=True)
class ErrorAnalysisResponse:
    """Post-mortem of a rejected answer."""

    recap: str
    blame: str
    improvement: str
    questions_to_answer: tuple[str, ...] = ()


# --- Collaborator records ---------------------------------------------------


@dataclass(frozen=True)
class SearchResult:
    """One normalized hit from a search backend."""

    title: str
    url: str
    description: str
    date: str | None = None
    weight: float = 1.0


@dataclass(frozen=True)
class BoostedSearchResult:
    """A search result with its ranking components."""

    result: SearchResult
    freq_boost: float
    hostname_boost: float
    path_boost: float
    rerank_boost: float
    final_score: float

    @property
    def url(self) -> str:
        return self.result.url


@dataclass(frozen=True)
class FetchResult:
    """Outcome of reading one URL. ``error`` is set when the fetch failed."""

    url: str
    title: str = ""
    content: str = ""
    links: tuple[tuple[str, str], ...] = ()  # (anchor, url)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CodingResult:
    """Outcome of a coding action."""

    think: str
    code: str
    output: str = ""
    error: str | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None


# --- Budget and run results -------------------------------------------------


@dataclass(frozen=True)
class Budget:
    """
    Remaining-budget descriptor handed to the action selector.

    ``floor_ratio`` is the fraction of the token budget that must remain
    before the selector is forced to answer; ``action_floor`` is the number
    of remaining actions at which the same happens.
    """

    tokens_used: int
    token_budget: int
    actions_taken: int
    max_actions: int
    floor_ratio: float = 0.15
    action_floor: int = 1

    @property
    def remaining_tokens(self) -> int:
        return max(self.token_budget - self.tokens_used, 0)

    @property
    def remaining_actions(self) -> int:
        return max(self.max_actions - self.actions_taken, 0)

    @property
    def exhausted(self) -> bool:
        return self.remaining_tokens <= 0 or self.remaining_actions <= 0

    @property
    def below_floor(self) -> bool:
        if self.exhausted:
            return True
        if self.remaining_tokens < self.token_budget * self.floor_ratio:
            return True
        return self.remaining_actions <= self.action_floor


@dataclass(frozen=True)
class SelectionContext:
    """
    Read-only snapshot of loop state offered to the action selector.

    Built by the controller before every selection; selectors must treat it
    as input only.
    """

    original_question: str
    allowed_actions: frozenset[str] = frozenset(ACTION_NAMES)
    pending_questions: tuple[str, ...] = ()
    candidate_urls: tuple[BoostedSearchResult, ...] = ()
    visited_urls: frozenset[str] = frozenset()
    past_queries: tuple[str, ...] = ()
    rejected_answers: tuple[str, ...] = ()
    step: int = 0

    def allows(self, action: str) -> bool:
        return action in self.allowed_actions


@dataclass
class ResearchResult:
    """Result of running one question through the research loop."""

    question: str
    answer: "AnswerAction"
    termination: Termination
    steps: int
    knowledge: tuple[KnowledgeItem, ...] = ()
    actions: list[StepAction] = field(default_factory=list)
    evaluations: list[dict[str, EvaluationResponse]] = field(default_factory=list)
    visited_urls: list[str] = field(default_factory=list)
    bad_urls: list[str] = field(default_factory=list)
    usage: dict[str, Any] = field(default_factory=dict)

    @property
    def is_final(self) -> bool:
        return self.answer.is_final
