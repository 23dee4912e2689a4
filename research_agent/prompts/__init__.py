"""Prompt templates for the research agent."""

from research_agent.prompts.research import (
    ACTION_DESCRIPTIONS,
    CLASSIFIER_SYSTEM_PROMPT,
    CODER_SYSTEM_PROMPT,
    ERROR_ANALYSIS_SYSTEM_PROMPT,
    EVALUATOR_SYSTEM_PROMPTS,
    ResearchPrompt,
    build_evaluator_prompt,
    build_research_prompt,
    format_context,
    format_knowledge,
)

__all__ = [
    "ACTION_DESCRIPTIONS",
    "CLASSIFIER_SYSTEM_PROMPT",
    "CODER_SYSTEM_PROMPT",
    "ERROR_ANALYSIS_SYSTEM_PROMPT",
    "EVALUATOR_SYSTEM_PROMPTS",
    "ResearchPrompt",
    "build_evaluator_prompt",
    "build_research_prompt",
    "format_context",
    "format_knowledge",
]
