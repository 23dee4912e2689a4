"""Markdown rendering of answers with numbered reference footnotes."""

from dataclasses import replace

from research_agent.core.types import AnswerAction


def render_markdown(answer: AnswerAction) -> str:
    """
    Render the answer text followed by footnotes for its references.

    Each reference becomes a ``[^n]`` marker after the answer and a
    footnote quoting it. Duplicate (quote, url) pairs share one footnote.
    """
    text = answer.answer.strip()
    if not answer.references:
        return text

    footnotes: list[str] = []
    seen: dict[tuple[str, str], int] = {}
    for ref in answer.references:
        key = (ref.exact_quote.strip(), ref.url)
        if key in seen:
            continue
        seen[key] = len(seen) + 1
        quote = " ".join(ref.exact_quote.split())
        date = f" ({ref.date_time})" if ref.date_time else ""
        footnotes.append(f'[^{seen[key]}]: "{quote}" [{ref.url}]({ref.url}){date}')

    markers = "".join(f"[^{n}]" for n in seen.values())
    return f"{text} {markers}\n\n" + "\n".join(footnotes)


def with_markdown(answer: AnswerAction) -> AnswerAction:
    """Return a copy of ``answer`` with ``md_answer`` filled in."""
    return replace(answer, md_answer=render_markdown(answer))
