"""Tests for token and action usage tracking."""

from research_agent.core.types import SearchAction
from research_agent.llm.mock import MockLLMClient
from research_agent.llm.usage import (
    ActionTracker,
    TokenTracker,
    TokenUsage,
    TrackerContext,
    UsageTrackingClient,
    estimate_tokens,
)


class TestTokenUsage:
    """Tests for TokenUsage."""

    def test_total_is_derived(self) -> None:
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50)
        assert usage.total_tokens == 150

    def test_explicit_total_kept(self) -> None:
        assert TokenUsage(prompt_tokens=1, completion_tokens=1, total_tokens=5).total_tokens == 5

    def test_defaults(self) -> None:
        assert TokenUsage().to_dict() == {
            "prompt_tokens": 0,
            "completion_tokens": 0,
            "total_tokens": 0,
        }


class TestTokenTracker:
    """Tests for TokenTracker."""

    def test_totals_and_summary_by_tool(self) -> None:
        tracker = TokenTracker()
        tracker.track_usage("agent", TokenUsage(prompt_tokens=100, completion_tokens=10))
        tracker.track_usage("evaluator", TokenUsage(prompt_tokens=50, completion_tokens=5))
        tracker.track_usage("agent", TokenUsage(prompt_tokens=20, completion_tokens=2))

        assert tracker.total_tokens == 187
        summary = tracker.get_usage_summary()
        assert summary["agent"].total_tokens == 132
        assert summary["evaluator"].prompt_tokens == 50
        total = tracker.get_total_usage()
        assert (total.prompt_tokens, total.completion_tokens) == (170, 17)

    def test_listeners_receive_records(self) -> None:
        tracker = TokenTracker()
        seen = []
        tracker.add_listener(lambda record: seen.append(record.tool))
        tracker.track_usage("coder", TokenUsage(prompt_tokens=1))
        assert seen == ["coder"]

    def test_cost_anthropic(self) -> None:
        """1000 input tokens at 0.003 plus 1000 output tokens at 0.015."""
        tracker = TokenTracker(provider="anthropic")
        tracker.track_usage("agent", TokenUsage(prompt_tokens=1000, completion_tokens=1000))
        assert round(tracker.get_total_cost(), 6) == 0.018

    def test_cost_unknown_provider(self) -> None:
        tracker = TokenTracker(provider="unknown")
        tracker.track_usage("agent", TokenUsage(prompt_tokens=1000, completion_tokens=1000))
        assert tracker.get_total_cost() == 0.0

    def test_reset(self) -> None:
        tracker = TokenTracker()
        tracker.track_usage("agent", TokenUsage(prompt_tokens=10))
        tracker.reset()
        assert tracker.total_tokens == 0
        assert tracker.get_usage_summary() == {}


class TestActionTracker:
    """Tests for ActionTracker."""

    def test_records_actions(self) -> None:
        tracker = ActionTracker()
        action = SearchAction(think="look it up", search_requests=("q",))
        tracker.track_action(1, action)

        assert tracker.count == 1
        record = tracker.last()
        assert record.step == 1
        assert record.action == "search"
        assert record.think == "look it up"
        assert record.payload["searchRequests"] == ["q"]

    def test_reset(self) -> None:
        tracker = ActionTracker()
        tracker.track_action(1, SearchAction(think="", search_requests=("q",)))
        tracker.reset()
        assert tracker.count == 0
        assert tracker.last() is None


class TestTrackerContext:
    def test_reset_clears_both(self) -> None:
        context = TrackerContext()
        context.token_tracker.track_usage("agent", TokenUsage(prompt_tokens=3))
        context.action_tracker.track_action(1, SearchAction(think="", search_requests=("q",)))
        context.reset()
        assert context.token_tracker.total_tokens == 0
        assert context.action_tracker.count == 0


class TestUsageTrackingClient:
    """Tests for UsageTrackingClient."""

    def test_uses_reported_usage(self) -> None:
        usage = TokenUsage(prompt_tokens=40, completion_tokens=8)
        tracker = TokenTracker()
        client = UsageTrackingClient(MockLLMClient(["hi"], usage=usage), tracker, tool="evaluator")

        assert client.complete([{"role": "user", "content": "hello"}]) == "hi"
        assert tracker.get_usage_summary()["evaluator"].total_tokens == 48

    def test_estimates_when_not_reported(self) -> None:
        tracker = TokenTracker()
        client = UsageTrackingClient(MockLLMClient(["x" * 40]), tracker)

        client.complete([{"role": "user", "content": "y" * 80}], system="z" * 20)

        usage = tracker.get_usage_summary()["agent"]
        assert usage.prompt_tokens == estimate_tokens("z" * 20 + "y" * 80)
        assert usage.completion_tokens == 10

    def test_tool_calls_are_tracked(self) -> None:
        tracker = TokenTracker()
        client = UsageTrackingClient(MockLLMClient(["r"]), tracker, tool="classifier")
        client.complete_with_tools([{"role": "user", "content": "q"}], [])
        assert "classifier" in tracker.get_usage_summary()

    def test_model_passthrough(self) -> None:
        inner = MockLLMClient()
        client = UsageTrackingClient(inner, TokenTracker())
        client.set_model("other")
        assert client.get_model() == "other"
        assert inner.get_model() == "other"
