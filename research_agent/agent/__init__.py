"""Research loop, action selection and answer rendering."""

from .config import ResearchConfig
from .selector import (
    LLMActionSelector,
    RuleBasedActionSelector,
    best_available_answer,
)
from .render import render_markdown, with_markdown
from .runner import CancellationToken, LoopState, ResearchAgent
from .factory import build_llm_agent

__all__ = [
    "ResearchConfig",
    "LLMActionSelector",
    "RuleBasedActionSelector",
    "best_available_answer",
    "render_markdown",
    "with_markdown",
    "CancellationToken",
    "LoopState",
    "ResearchAgent",
    "build_llm_agent",
]
