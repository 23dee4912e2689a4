"""Text normalization helpers shared by the store, selector and evaluator."""

import re

STOPWORDS = frozenset(
    """
    a about an and any are as at be been but by can could did do does for from
    had has have how i if in into is it its list me most name of on or please
    provide should show some tell than that the their them there these they
    this those to was were what when where which who whom whose why will with
    would you your give find describe explain many much
    """.split()
)

_WORD_RE = re.compile(r"[a-z0-9][a-z0-9'\-\.]*[a-z0-9]|[a-z0-9]")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+|\n+")


def normalize(text: str) -> str:
    """Lowercase and collapse all whitespace runs to single spaces."""
    return " ".join(text.lower().split())


def normalize_quote(text: str) -> str:
    """Normalize for verbatim quote matching: case, whitespace and quote marks."""
    text = (
        text.replace("“", '"')
        .replace("”", '"')
        .replace("‘", "'")
        .replace("’", "'")
    )
    return normalize(text)


def tokens(text: str) -> list[str]:
    """Return lowercase word tokens without stopwords."""
    return [t for t in _WORD_RE.findall(text.lower()) if t not in STOPWORDS]


def overlap(a: str, b: str) -> float:
    """Fraction of the content words of ``a`` that also appear in ``b``."""
    a_tokens = set(tokens(a))
    if not a_tokens:
        return 0.0
    b_tokens = set(tokens(b))
    return len(a_tokens & b_tokens) / len(a_tokens)


def sentences(text: str) -> list[str]:
    """Split prose on sentence-ending punctuation and line breaks."""
    return [s.strip() for s in _SENTENCE_RE.split(text) if s.strip()]


def clip(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + f"...[truncated {len(text) - max_chars} chars]"
