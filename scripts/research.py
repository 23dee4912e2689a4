#!/usr/bin/env python3
"""
Research a single question with Claude and a web search backend.

Requires: ANTHROPIC_API_KEY plus the key of the chosen search backend
(JINA_API_KEY, BRAVE_API_KEY or SERPER_API_KEY).

Examples:
    uv run python scripts/research.py "What is the capital of France?"

    # Use Brave search and a tighter budget
    uv run python scripts/research.py "Latest Python release?" --search brave --max-actions 10

    # Print the full action trace and save the result
    uv run python scripts/research.py "..." --verbose --output results/answer.json
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from research_agent.agent import CancellationToken, ResearchConfig, build_llm_agent
from research_agent.executor import JinaReader, create_search_executor
from research_agent.llm import ClaudeClient


def main():
    parser = argparse.ArgumentParser(description="Research one question")
    parser.add_argument("question", type=str, help="The question to research")
    parser.add_argument(
        "--search",
        type=str,
        default="jina",
        help="Search backend: jina, brave or serper (default: jina)",
    )
    parser.add_argument("--model", type=str, default=None, help="Claude model to use")
    parser.add_argument("--max-actions", type=int, default=None, help="Action budget")
    parser.add_argument("--max-tokens", type=int, default=None, help="Token budget")
    parser.add_argument(
        "--timeout", type=float, default=None, help="Cancel the run after this many seconds"
    )
    parser.add_argument("--no-coding", action="store_true", help="Disable coding actions")
    parser.add_argument("--output", type=str, default=None, help="Write the result as JSON")
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

    overrides = {}
    if args.max_actions:
        overrides["max_actions"] = args.max_actions
    if args.max_tokens:
        overrides["max_tokens"] = args.max_tokens
    config = ResearchConfig.from_env(**overrides)

    try:
        search = create_search_executor(args.search)
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    agent = build_llm_agent(
        ClaudeClient(model=args.model),
        search=search,
        fetcher=JinaReader(max_workers=config.max_concurrent_fetches),
        config=config,
        enable_coding=not args.no_coding,
    )

    cancel = CancellationToken(timeout=args.timeout) if args.timeout else None
    result = agent.run(args.question, cancel=cancel)

    print()
    print("=" * 60)
    print(result.answer.md_answer or result.answer.answer)
    print("=" * 60)
    print(f"Final: {result.is_final} ({result.termination}) after {result.steps} steps")
    print(f"Tokens: {result.usage['tokens']['total_tokens']}  Cost: ${result.usage['cost']:.4f}")

    if args.verbose:
        for i, action in enumerate(result.actions, 1):
            print(f"  {i:>2}. {action.action}: {action.think[:100]}")

    if args.output:
        path = Path(args.output)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "question": result.question,
            "answer": result.answer.to_dict(),
            "termination": result.termination,
            "steps": result.steps,
            "actions": [a.to_dict() for a in result.actions],
            "knowledge": [k.to_dict() for k in result.knowledge],
            "visited_urls": result.visited_urls,
            "bad_urls": result.bad_urls,
            "usage": result.usage,
        }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        print(f"Result written to {path}")


if __name__ == "__main__":
    main()
