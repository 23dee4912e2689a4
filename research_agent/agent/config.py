"""Configuration for the research loop."""

import os
from dataclasses import dataclass, fields
from typing import Any

from research_agent.core.types import EVALUATION_ORDER


@dataclass
class ResearchConfig:
    """
    Budget and behaviour settings for one ResearchAgent.

    ``evaluation_types=None`` lets the question classifier decide which
    criteria apply. "strict" is always added when gating the original
    question.
    """

    max_tokens: int = 1_000_000
    max_actions: int = 50
    min_budget_floor: float = 0.15
    action_floor: int = 1
    evaluation_types: tuple[str, ...] | None = None
    require_attribution: bool = True
    max_bad_attempts: int = 3
    max_pending_questions: int = 5
    max_urls_per_visit: int = 3
    max_queries_per_search: int = 3
    max_concurrent_fetches: int = 4
    max_coding_attempts: int = 3

    def __post_init__(self) -> None:
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if self.max_actions <= 0:
            raise ValueError("max_actions must be positive")
        if not 0.0 <= self.min_budget_floor < 1.0:
            raise ValueError("min_budget_floor must be in [0, 1)")
        if self.evaluation_types is not None:
            self.evaluation_types = tuple(self.evaluation_types)
            unknown = [t for t in self.evaluation_types if t not in EVALUATION_ORDER]
            if unknown:
                raise ValueError(f"Unknown evaluation type(s): {', '.join(unknown)}")

    @classmethod
    def from_env(cls, prefix: str = "RESEARCH_", **overrides: Any) -> "ResearchConfig":
        """
        Build a config from environment variables.

        Each field maps to ``{prefix}{FIELD_NAME}``, e.g. RESEARCH_MAX_ACTIONS.
        ``evaluation_types`` is a comma-separated list. Keyword overrides win.
        """
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = os.environ.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            if f.name == "evaluation_types":
                values[f.name] = tuple(t.strip() for t in raw.split(",") if t.strip())
            elif f.name == "require_attribution":
                values[f.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            elif f.name == "min_budget_floor":
                values[f.name] = float(raw)
            else:
                values[f.name] = int(raw)
        values.update(overrides)
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
