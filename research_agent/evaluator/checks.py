"""
Deterministic implementations of the answer evaluation criteria.

Each check is a pure function of its inputs and returns one
EvaluationResponse. The clock used by the freshness check is a parameter.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Sequence

from research_agent.core.text import normalize, normalize_quote, overlap, sentences, tokens
from research_agent.core.types import (
    AnswerAction,
    CompletenessAnalysis,
    EvaluationResponse,
    FreshnessAnalysis,
    KnowledgeItem,
    PluralityAnalysis,
    Reference,
)
from research_agent.knowledge.store import source_content

# --- definitive -------------------------------------------------------------

HEDGE_PATTERNS = [
    r"\bi (?:do not|don'?t) know\b",
    r"\bnot sure\b",
    r"\bunable to (?:determine|find|answer|provide|confirm|verify)\b",
    r"\b(?:cannot|can'?t|could not|couldn'?t) (?:be )?(?:determine|determined|find|answer|provide|confirm|say)\b",
    r"\bno (?:definitive|clear|reliable|conclusive) (?:answer|information|evidence)\b",
    r"\b(?:not enough|insufficient|limited) (?:information|data|evidence)\b",
    r"\bno information (?:is )?available\b",
    r"\bno answer (?:could|can) be (?:established|found|determined)\b",
    r"\bit is (?:unclear|not clear|uncertain)\b",
    r"\bi'?m sorry\b",
    r"\bas an ai\b",
]
_HEDGE_RE = re.compile("|".join(HEDGE_PATTERNS), re.IGNORECASE)


def check_definitive(candidate: AnswerAction) -> EvaluationResponse:
    """Fail refusals, hedges and empty answers."""
    text = candidate.answer.strip()
    if not text:
        return EvaluationResponse(
            passed=False,
            think="The answer is empty.",
            type="definitive",
            improvement_plan="Gather evidence and state a concrete answer.",
        )
    match = _HEDGE_RE.search(text)
    if match:
        return EvaluationResponse(
            passed=False,
            think=f"The answer hedges or refuses: '{match.group(0)}'.",
            type="definitive",
            improvement_plan=(
                "Search for direct evidence and commit to a specific answer "
                "instead of expressing uncertainty."
            ),
        )
    return EvaluationResponse(
        passed=True,
        think="The answer states a concrete resolution.",
        type="definitive",
    )


# --- freshness --------------------------------------------------------------

# (keywords, max age in days). First matching row wins; order matters.
FRESHNESS_RULES: list[tuple[tuple[str, ...], float]] = [
    (("stock price", "share price", "exchange rate", "bitcoin", "crypto", "market cap"), 0.1),
    (("breaking", "today", "tonight", "right now", "this morning", "weather", "live score"), 1.0),
    (("news", "latest", "current", "currently", "this week", "recent", "recently", "now"), 7.0),
    (("version", "release", "released", "update", "this month", "price"), 30.0),
    (("this year", "ceo", "president", "population", "record"), 365.0),
]
DEFAULT_MAX_AGE_DAYS = 365.0

_RELATIVE_RE = re.compile(r"(\d+)\s+(minute|hour|day|week|month|year)s?\s+ago", re.IGNORECASE)
_RELATIVE_UNITS = {
    "minute": 1 / 1440,
    "hour": 1 / 24,
    "day": 1,
    "week": 7,
    "month": 30,
    "year": 365,
}
_DATE_FORMATS = ("%Y-%m-%d", "%b %d, %Y", "%B %d, %Y", "%d %b %Y", "%d %B %Y", "%Y/%m/%d")


def freshness_max_age(question: str) -> float:
    """Allowed source age in days for the topic of ``question``."""
    q = f" {normalize(question)} "
    for keywords, max_age in FRESHNESS_RULES:
        if any(f" {k} " in q or f" {k}?" in q for k in keywords):
            return max_age
    return DEFAULT_MAX_AGE_DAYS


def parse_date(value: str, now: datetime) -> datetime | None:
    """Parse ISO dates, common long forms and 'N units ago'. Naive means UTC."""
    value = (value or "").strip()
    if not value:
        return None
    match = _RELATIVE_RE.search(value)
    if match:
        days = int(match.group(1)) * _RELATIVE_UNITS[match.group(2).lower()]
        return now - timedelta(days=days)
    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def check_freshness(
    question: str, candidate: AnswerAction, now: datetime
) -> EvaluationResponse:
    """
    Pass when every dated reference is within the topic's max age.

    The oldest dated reference decides the verdict and the reported age.
    Undated references are ignored as long as at least one is dated.
    """
    max_age = freshness_max_age(question)
    dated = [
        (d, ref)
        for d, ref in ((parse_date(ref.date_time or "", now), ref) for ref in candidate.references)
        if d is not None
    ]
    if not dated:
        return EvaluationResponse(
            passed=False,
            think="No reference carries a publication date, so freshness cannot be shown.",
            type="freshness",
            improvement_plan=(
                f"Find sources with explicit publication dates from the last "
                f"{max_age:g} days and cite their dates."
            ),
        )
    oldest, oldest_ref = min(dated, key=lambda pair: pair[0])
    days_ago = round(max((now - oldest).total_seconds() / 86400, 0.0), 2)
    analysis = FreshnessAnalysis(days_ago=days_ago, max_age_days=max_age)
    if days_ago <= max_age:
        return EvaluationResponse(
            passed=True,
            think=f"Oldest dated source is {days_ago:g} days old (limit {max_age:g}).",
            type="freshness",
            freshness_analysis=analysis,
        )
    return EvaluationResponse(
        passed=False,
        think=(
            f"{oldest_ref.url} is {days_ago:g} days old, "
            f"older than the {max_age:g}-day limit."
        ),
        type="freshness",
        freshness_analysis=analysis,
        improvement_plan=(
            f"Replace {oldest_ref.url} with a source published within the last "
            f"{max_age:g} days and update the answer with it."
        ),
    )


# --- plurality --------------------------------------------------------------

NUMBER_WORDS = {
    "two": 2, "three": 3, "four": 4, "five": 5, "six": 6, "seven": 7,
    "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
    "fifteen": 15, "twenty": 20, "a couple of": 2, "a pair of": 2, "several": 3,
}
_NUMBER = r"(\d{1,3}|" + "|".join(re.escape(w) for w in NUMBER_WORDS) + r")"
_LIST_NOUNS = (
    r"(?:examples|ways|reasons|types|kinds|items|things|steps|tips|ideas|options|"
    r"methods|tools|alternatives|benefits|features|facts|names|books|films|movies|"
    r"songs|places|countries|cities|capitals|rivers|companies|people|languages|"
    r"sources|factors|causes|differences|uses|words)"
)
# a bare number counts only after "what are the" or in front of a list noun
_COUNT_PATTERNS = [
    re.compile(rf"\b(?:top|list|name|give|provide|find|identify|suggest|at least)\s+(?:me\s+)?{_NUMBER}\b", re.I),
    re.compile(rf"\b(?:what|which|who)\s+(?:are|were)\s+(?:the\s+)?{_NUMBER}\s+(?:[a-z\-]+\s+){{0,2}}[a-z\-]+s\b", re.I),
    re.compile(rf"\b{_NUMBER}\s+(?:[a-z\-]+\s+){{0,2}}{_LIST_NOUNS}\b", re.I),
]
_LIST_LINE_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.+)$")
_SPLIT_RE = re.compile(r";|,|\n|\band\b|\bor\b", re.I)


def required_count(question: str) -> int | None:
    """Number of items the question asks for, if it asks for a number."""
    for pattern in _COUNT_PATTERNS:
        match = pattern.search(question)
        if match:
            raw = match.group(1).lower()
            count = NUMBER_WORDS.get(raw) or int(raw)
            if count >= 2:
                return count
    return None


def count_items(answer: str) -> int:
    """Count distinct items listed in an answer."""
    lines = [m.group(1) for m in map(_LIST_LINE_RE.match, answer.splitlines()) if m]
    if len(lines) >= 2:
        items = lines
    else:
        body = answer.strip().rstrip(".")
        if ":" in body:
            body = body.split(":", 1)[1]
        items = _SPLIT_RE.split(body)
    distinct = {normalize(i).strip(" .") for i in items}
    return len({i for i in distinct if i})


def check_plurality(question: str, candidate: AnswerAction) -> EvaluationResponse:
    """Fail when fewer distinct items are given than the question asks for."""
    required = required_count(question)
    if required is None:
        return EvaluationResponse(
            passed=True,
            think="The question does not ask for a specific number of items.",
            type="plurality",
        )
    provided = count_items(candidate.answer)
    analysis = PluralityAnalysis(
        minimum_count_required=required, actual_count_provided=provided
    )
    if provided >= required:
        return EvaluationResponse(
            passed=True,
            think=f"The answer lists {provided} items; {required} were requested.",
            type="plurality",
            plurality_analysis=analysis,
        )
    return EvaluationResponse(
        passed=False,
        think=f"The answer lists {provided} items but {required} were requested.",
        type="plurality",
        plurality_analysis=analysis,
        improvement_plan=f"Find {required - provided} more distinct items and list all {required}.",
    )


# --- attribution ------------------------------------------------------------

# share of a sentence's content words that its best quote must cover
SENTENCE_SUPPORT = 0.5


def quote_found(ref: Reference, knowledge: Sequence[KnowledgeItem]) -> bool:
    """True when the reference quote appears verbatim in its URL's known content."""
    quote = normalize_quote(ref.exact_quote)
    return bool(quote) and quote in normalize_quote(source_content(knowledge, ref.url))


def verified_references(
    references: Sequence[Reference], knowledge: Sequence[KnowledgeItem]
) -> tuple[Reference, ...]:
    return tuple(ref for ref in references if quote_found(ref, knowledge))


def unsupported_sentence(answer: str, references: Sequence[Reference]) -> str | None:
    """
    Return the first answer sentence no reference backs, or None.

    A sentence is backed when one quote covers SENTENCE_SUPPORT of its
    content words, or all quotes together cover every one of them.
    Sentences without content words are skipped.
    """
    quotes = [ref.exact_quote for ref in references]
    combined = " ".join(quotes)
    for sentence in sentences(answer):
        if not tokens(sentence):
            continue
        if max(overlap(sentence, q) for q in quotes) >= SENTENCE_SUPPORT:
            continue
        if overlap(sentence, combined) == 1.0:
            continue
        return sentence
    return None


def check_attribution(
    candidate: AnswerAction, knowledge: Sequence[KnowledgeItem]
) -> EvaluationResponse:
    """
    Every quote must appear verbatim in its URL's known content, and every
    sentence of the answer must be backed by the quotes.
    """
    if not candidate.references:
        return EvaluationResponse(
            passed=False,
            think="The answer cites no references.",
            type="attribution",
            improvement_plan="Back each claim with an exact quote from a visited source.",
        )
    for ref in candidate.references:
        if not quote_found(ref, knowledge):
            return EvaluationResponse(
                passed=False,
                think=f"Quote not found in the content known for {ref.url}.",
                type="attribution",
                exact_quote=ref.exact_quote,
                improvement_plan=(
                    f"Visit {ref.url} and copy the supporting sentence verbatim, "
                    "or drop the unsupported claim."
                ),
            )
    sentence = unsupported_sentence(candidate.answer, candidate.references)
    if sentence is not None:
        return EvaluationResponse(
            passed=False,
            think=f'No reference backs the claim "{sentence}".',
            type="attribution",
            improvement_plan=(
                f'Cite an exact quote that supports "{sentence}", or remove that claim.'
            ),
        )
    return EvaluationResponse(
        passed=True,
        think=f"All {len(candidate.references)} quotes were found in their sources.",
        type="attribution",
    )


# --- completeness -----------------------------------------------------------

_ASPECT_SPLIT_RE = re.compile(r",|;|\band\b|\bas well as\b|\balong with\b", re.I)


def _stem(token: str) -> str:
    return token[:-1] if len(token) > 3 and token.endswith("s") else token


def question_aspects(question: str) -> list[tuple[str, set[str]]]:
    """
    Split a compound question into aspects.

    Returns (label, key stems) pairs, or an empty list when the question
    has a single aspect. Words shared by every part (the subject) are not
    used as keys.
    """
    parts = [p.strip(" ?.") for p in _ASPECT_SPLIT_RE.split(question)]
    parts = [p for p in parts if tokens(p)]
    if len(parts) < 2:
        return []
    stems = [{_stem(t) for t in tokens(p)} for p in parts]
    shared = set.intersection(*stems)
    aspects = []
    for part, keys in zip(parts, stems):
        keys = keys - shared or keys
        aspects.append((" ".join(tokens(part)), keys))
    return aspects


def check_completeness(question: str, candidate: AnswerAction) -> EvaluationResponse:
    """Every aspect of a compound question must be addressed."""
    aspects = question_aspects(question)
    if not aspects:
        return EvaluationResponse(
            passed=True,
            think="The question has a single aspect.",
            type="completeness",
        )
    answer_stems = {_stem(t) for t in tokens(candidate.answer)}
    covered = [label for label, keys in aspects if len(keys & answer_stems) * 2 >= len(keys)]
    expected = [label for label, _ in aspects]
    analysis = CompletenessAnalysis(
        aspects_expected=", ".join(expected), aspects_provided=", ".join(covered)
    )
    missing = [label for label in expected if label not in covered]
    if not missing:
        return EvaluationResponse(
            passed=True,
            think=f"All {len(expected)} aspects are addressed.",
            type="completeness",
            completeness_analysis=analysis,
        )
    return EvaluationResponse(
        passed=False,
        think=f"Missing aspects: {', '.join(missing)}.",
        type="completeness",
        completeness_analysis=analysis,
        improvement_plan=f"Research and add: {', '.join(missing)}.",
    )


# --- strict -----------------------------------------------------------------


def check_strict(verdicts: dict[str, EvaluationResponse]) -> EvaluationResponse:
    """Conjunction of the other criteria."""
    failed = [v for v in verdicts.values() if v.type != "strict" and not v.passed]
    if not failed:
        return EvaluationResponse(
            passed=True,
            think="Every selected criterion passed.",
            type="strict",
        )
    return EvaluationResponse(
        passed=False,
        think="Failed criteria: " + ", ".join(str(v.type) for v in failed) + ".",
        type="strict",
        improvement_plan=failed[0].improvement_plan,
    )
