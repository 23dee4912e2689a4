"""LLM client abstractions and usage tracking."""

from .protocol import LLMClient
from .claude import ClaudeClient
from .mock import MockLLMClient, tool_call
from .model_config import ModelConfig
from .usage import (
    TokenUsage,
    TokenTracker,
    ActionTracker,
    TrackerContext,
    UsageTrackingClient,
)

__all__ = [
    "LLMClient",
    "ClaudeClient",
    "MockLLMClient",
    "tool_call",
    "ModelConfig",
    "TokenUsage",
    "TokenTracker",
    "ActionTracker",
    "TrackerContext",
    "UsageTrackingClient",
]
