"""Batch evaluation: run the agent over a question file and export results."""

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable

import pandas as pd

from research_agent.agent.runner import ResearchAgent
from research_agent.core.text import normalize
from research_agent.core.types import ResearchResult

logger = logging.getLogger(__name__)

RESULT_COLUMNS = [
    "question",
    "expected_answer",
    "answer",
    "is_final",
    "termination",
    "steps",
    "total_tokens",
    "cost",
    "matches_expected",
    "duration_seconds",
]


def load_questions(path: str | Path) -> pd.DataFrame:
    """
    Load questions from CSV, JSON or JSONL.

    The file must have a ``question`` column; ``expected_answer`` is
    optional and filled with None when absent.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the format is unsupported or ``question`` is missing.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Question file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        frame = pd.read_csv(path)
    elif suffix == ".jsonl":
        frame = pd.read_json(path, lines=True)
    elif suffix == ".json":
        frame = pd.read_json(path)
    else:
        raise ValueError(f"Unsupported question file format: {suffix}")

    if "question" not in frame.columns:
        raise ValueError(f"{path} has no 'question' column")
    if "expected_answer" not in frame.columns:
        frame["expected_answer"] = None

    frame = frame.dropna(subset=["question"]).copy()
    frame["question"] = frame["question"].astype(str).str.strip()
    frame = frame[frame["question"] != ""].reset_index(drop=True)
    frame["expected_answer"] = pd.Series(
        [None if pd.isna(v) else v for v in frame["expected_answer"]],
        index=frame.index,
        dtype=object,
    )
    return frame[["question", "expected_answer"]]


def answer_matches(answer: str, expected: Any) -> bool | None:
    """Whether the expected answer appears in the answer; None if no expectation."""
    if expected is None or (isinstance(expected, float) and pd.isna(expected)):
        return None
    return normalize(str(expected)) in normalize(answer)


def result_row(result: ResearchResult, expected: Any, duration: float) -> dict[str, Any]:
    return {
        "question": result.question,
        "expected_answer": expected,
        "answer": result.answer.answer,
        "is_final": result.is_final,
        "termination": result.termination,
        "steps": result.steps,
        "total_tokens": result.usage.get("tokens", {}).get("total_tokens", 0),
        "cost": result.usage.get("cost", 0.0),
        "matches_expected": answer_matches(result.answer.answer, expected),
        "duration_seconds": round(duration, 3),
    }


def run_batch(
    agent: ResearchAgent,
    questions: pd.DataFrame,
    progress_callback: Callable[[int, int, ResearchResult], None] | None = None,
) -> pd.DataFrame:
    """Run every question through ``agent`` and collect one row per run."""
    rows = []
    total = len(questions)
    for i, record in enumerate(questions.itertuples(index=False), 1):
        start = time.time()
        result = agent.run(record.question)
        rows.append(result_row(result, record.expected_answer, time.time() - start))
        logger.info(
            f"[BATCH] {i}/{total} {result.termination} in {result.steps} steps: "
            f"{record.question[:60]}"
        )
        if progress_callback:
            progress_callback(i, total, result)
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def summarize(results: pd.DataFrame) -> dict[str, Any]:
    """Aggregate metrics over a results frame."""
    if results.empty:
        return {"total": 0}
    judged = results["matches_expected"].dropna()
    return {
        "total": int(len(results)),
        "final_rate": float(results["is_final"].mean()),
        "accuracy": float(judged.astype(bool).mean()) if len(judged) else None,
        "avg_steps": float(results["steps"].mean()),
        "avg_tokens": float(results["total_tokens"].mean()),
        "total_cost": float(results["cost"].sum()),
        "terminations": {str(k): int(v) for k, v in results["termination"].value_counts().items()},
    }


def export_results(
    results: pd.DataFrame, output_dir: str | Path, prefix: str = "batch"
) -> dict[str, Path]:
    """Write ``{prefix}_results.csv`` and ``{prefix}_results.json`` (with summary)."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    csv_path = output_dir / f"{prefix}_results.csv"
    results.to_csv(csv_path, index=False)

    json_path = output_dir / f"{prefix}_results.json"
    payload = {
        "summary": summarize(results),
        "results": json.loads(results.to_json(orient="records")),
    }
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    return {"csv": csv_path, "json": json_path}
