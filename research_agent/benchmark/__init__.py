"""Batch evaluation over question files."""

from .batch import (
    answer_matches,
    export_results,
    load_questions,
    run_batch,
    summarize,
)

__all__ = [
    "answer_matches",
    "export_results",
    "load_questions",
    "run_batch",
    "summarize",
]
