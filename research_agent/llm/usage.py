"""Token and action usage tracking for a research run."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

from .protocol import LLMClient

logger = logging.getLogger(__name__)


@dataclass
class TokenUsage:
    """Token usage information for an LLM call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self) -> None:
        if not self.total_tokens:
            self.total_tokens = self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class UsageRecord:
    """One usage report: which tool spent the tokens."""

    tool: str
    usage: TokenUsage


class TokenTracker:
    """
    Per-run token accounting.

    Receives one record per model call, keyed by the tool that made it.
    The controller reads ``total_tokens`` for budget checks; callers read
    ``get_usage_summary`` and ``get_total_cost`` for billing.
    """

    # Cost rates in USD per 1K tokens
    COST_RATES: Dict[str, Dict[str, float]] = {
        "anthropic": {
            "input": 0.003,
            "output": 0.015,
        },
        "mock": {
            "input": 0.001,
            "output": 0.001,
        },
    }

    def __init__(self, budget: int | None = None, provider: str = "anthropic") -> None:
        self.budget = budget
        self.provider = provider
        self._records: list[UsageRecord] = []
        self._listeners: list[Callable[[UsageRecord], None]] = []

    def track_usage(self, tool: str, usage: TokenUsage) -> None:
        """Record usage for a tool and notify listeners."""
        record = UsageRecord(tool=tool, usage=usage)
        self._records.append(record)
        for listener in self._listeners:
            listener(record)
        if self.budget and self.total_tokens > self.budget:
            logger.warning(
                f"[BUDGET] Token budget exceeded: {self.total_tokens}/{self.budget}"
            )

    def add_listener(self, listener: Callable[[UsageRecord], None]) -> None:
        self._listeners.append(listener)

    @property
    def total_tokens(self) -> int:
        return sum(r.usage.total_tokens for r in self._records)

    def get_total_usage(self) -> TokenUsage:
        """Sum of all recorded usage."""
        return TokenUsage(
            prompt_tokens=sum(r.usage.prompt_tokens for r in self._records),
            completion_tokens=sum(r.usage.completion_tokens for r in self._records),
            total_tokens=self.total_tokens,
        )

    def get_usage_summary(self) -> Dict[str, TokenUsage]:
        """Usage aggregated by tool."""
        summary: Dict[str, TokenUsage] = {}
        for record in self._records:
            existing = summary.setdefault(record.tool, TokenUsage())
            existing.prompt_tokens += record.usage.prompt_tokens
            existing.completion_tokens += record.usage.completion_tokens
            existing.total_tokens += record.usage.total_tokens
        return summary

    def calculate_cost(self, usage: TokenUsage) -> float:
        """Calculate cost for given usage."""
        rates = self.COST_RATES.get(self.provider)
        if rates is None:
            return 0.0
        input_cost = (usage.prompt_tokens / 1000) * rates.get("input", 0)
        output_cost = (usage.completion_tokens / 1000) * rates.get("output", 0)
        return input_cost + output_cost

    def get_total_cost(self) -> float:
        return self.calculate_cost(self.get_total_usage())

    def reset(self) -> None:
        """Reset all tracking."""
        self._records.clear()


@dataclass
class ActionRecord:
    step: int
    action: str
    think: str
    payload: dict[str, Any] = field(default_factory=dict)


class ActionTracker:
    """Records one entry per emitted StepAction."""

    def __init__(self) -> None:
        self._records: list[ActionRecord] = []
        self._listeners: list[Callable[[ActionRecord], None]] = []

    def track_action(self, step: int, action: Any) -> None:
        """Record an action. ``action`` is any StepAction."""
        payload = action.to_dict() if hasattr(action, "to_dict") else {}
        record = ActionRecord(
            step=step,
            action=getattr(action, "action", "unknown"),
            think=getattr(action, "think", ""),
            payload=payload,
        )
        self._records.append(record)
        for listener in self._listeners:
            listener(record)

    def add_listener(self, listener: Callable[[ActionRecord], None]) -> None:
        self._listeners.append(listener)

    @property
    def count(self) -> int:
        return len(self._records)

    def history(self) -> list[ActionRecord]:
        return list(self._records)

    def last(self) -> ActionRecord | None:
        return self._records[-1] if self._records else None

    def reset(self) -> None:
        self._records.clear()


@dataclass
class TrackerContext:
    """Trackers for a single run, passed explicitly to every component."""

    token_tracker: TokenTracker = field(default_factory=TokenTracker)
    action_tracker: ActionTracker = field(default_factory=ActionTracker)

    def reset(self) -> None:
        self.token_tracker.reset()
        self.action_tracker.reset()


def estimate_tokens(text: str) -> int:
    """Rough token estimate used when a provider reports no usage."""
    return max(1, len(text) // 4)


class UsageTrackingClient(LLMClient):
    """
    Wrapper LLM client that reports token usage to a TokenTracker.

    Uses the usage the wrapped client reports via ``last_usage`` when it
    has one, and a character-based estimate otherwise.
    """

    def __init__(self, client: LLMClient, tracker: TokenTracker, tool: str = "agent"):
        self._client = client
        self._tracker = tracker
        self.tool = tool

    def complete(self, messages: list[dict], **kwargs: Any) -> str:
        """Complete with usage tracking."""
        result = self._client.complete(messages, **kwargs)
        self._record(messages, kwargs, result)
        return result

    def complete_with_tools(
        self, messages: list[dict], tools: list[dict], **kwargs: Any
    ) -> dict:
        """Complete with tools and usage tracking."""
        result = self._client.complete_with_tools(messages, tools, **kwargs)
        self._record(messages, kwargs, str(result.get("content", "")) + str(result.get("tool_calls", "")))
        return result

    def _record(self, messages: list[dict], kwargs: dict, output: str) -> None:
        usage = getattr(self._client, "last_usage", None)
        if not isinstance(usage, TokenUsage):
            prompt_text = str(kwargs.get("system", "")) + "".join(
                str(m.get("content", "")) for m in messages
            )
            usage = TokenUsage(
                prompt_tokens=estimate_tokens(prompt_text),
                completion_tokens=estimate_tokens(output),
            )
        self._tracker.track_usage(self.tool, usage)

    def set_model(self, model: str) -> None:
        self._client.set_model(model)

    def get_model(self) -> str:
        return self._client.get_model()

    def get_tracker(self) -> TokenTracker:
        return self._tracker
