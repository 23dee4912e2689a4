#!/usr/bin/env python3
"""
Run the research agent over a file of questions and export the results.

The input is CSV, JSON or JSONL with a ``question`` column and an optional
``expected_answer`` column.

Examples:
    uv run python scripts/batch_eval.py questions.csv

    uv run python scripts/batch_eval.py questions.jsonl --limit 5 --output-dir results/
"""

import argparse
import logging
import os
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from research_agent.agent import ResearchConfig, build_llm_agent
from research_agent.benchmark.batch import export_results, load_questions, run_batch, summarize
from research_agent.executor import JinaReader, create_search_executor
from research_agent.llm import ClaudeClient


def main():
    parser = argparse.ArgumentParser(description="Batch-evaluate the research agent")
    parser.add_argument("questions", type=str, help="CSV/JSON/JSONL question file")
    parser.add_argument("--search", type=str, default="jina", help="jina, brave or serper")
    parser.add_argument("--model", type=str, default=None, help="Claude model to use")
    parser.add_argument("--limit", type=int, default=None, help="Only run the first N questions")
    parser.add_argument("--max-actions", type=int, default=None, help="Action budget per question")
    parser.add_argument("--output-dir", type=str, default="results", help="Export directory")
    parser.add_argument("--prefix", type=str, default="batch", help="Output file prefix")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not os.environ.get("ANTHROPIC_API_KEY"):
        print("ERROR: ANTHROPIC_API_KEY environment variable not set.")
        print("Set it in .env file or export it in your shell.")
        sys.exit(1)

    questions = load_questions(args.questions)
    if args.limit:
        questions = questions.head(args.limit)

    overrides = {"max_actions": args.max_actions} if args.max_actions else {}
    config = ResearchConfig.from_env(**overrides)
    agent = build_llm_agent(
        ClaudeClient(model=args.model),
        search=create_search_executor(args.search),
        fetcher=JinaReader(max_workers=config.max_concurrent_fetches),
        config=config,
    )

    print(f"Running {len(questions)} questions")
    print("=" * 60)

    def progress(i, total, result):
        status = "FINAL" if result.is_final else result.termination
        print(f"[{i}/{total}] {status:<16} {result.question[:60]}")

    results = run_batch(agent, questions, progress_callback=progress)
    if results.empty:
        print("No questions to run.")
        return
    paths = export_results(results, args.output_dir, prefix=args.prefix)
    summary = summarize(results)

    print("=" * 60)
    print(f"Final answers: {summary['final_rate']:.1%}")
    if summary.get("accuracy") is not None:
        print(f"Accuracy vs expected: {summary['accuracy']:.1%}")
    print(f"Avg steps: {summary['avg_steps']:.1f}  Avg tokens: {summary['avg_tokens']:.0f}")
    print(f"Total cost: ${summary['total_cost']:.4f}")
    print(f"Results: {paths['csv']} and {paths['json']}")


if __name__ == "__main__":
    main()
