"""Scripted LLM client for deterministic tests."""

from typing import Any

from .protocol import LLMClient
from .usage import TokenUsage

Scripted = str | dict | Exception


def tool_call(name: str, arguments: dict, content: str = "") -> dict:
    """Build a canned complete_with_tools() response with one tool call."""
    return {
        "content": content,
        "tool_calls": [{"id": f"call_{name}", "name": name, "arguments": arguments}],
        "stop_reason": "tool_use",
    }


def as_tool_response(scripted: str | dict) -> dict:
    if isinstance(scripted, dict):
        return {
            "content": scripted.get("content", ""),
            "tool_calls": scripted.get("tool_calls", []),
            "stop_reason": scripted.get("stop_reason", "end_turn"),
        }
    return {"content": str(scripted), "tool_calls": [], "stop_reason": "end_turn"}


class MockLLMClient(LLMClient):
    """
    LLM client that replays a script.

    Each call consumes the next scripted entry, wrapping around at the end.
    A string is a text reply, a dict a tool response (see ``tool_call``),
    and an Exception is raised to stand in for a provider failure. Every
    call is recorded with the exact message list it was given.
    """

    def __init__(
        self,
        responses: list[Scripted] | None = None,
        model: str = "mock-model",
        usage: TokenUsage | None = None,
    ) -> None:
        self._script: list[Scripted] = list(responses) if responses else ["Mock response"]
        self._position = 0
        self._calls: list[dict] = []
        self._model = model
        self._usage = usage
        self.last_usage: TokenUsage | None = None

    def add_response(self, response: Scripted) -> None:
        self._script.append(response)

    def set_responses(self, responses: list[Scripted]) -> None:
        self._script = list(responses) or ["Mock response"]
        self._position = 0

    def complete(self, messages: list[dict], **kwargs: Any) -> str:
        self._calls.append({"method": "complete", "messages": messages, "kwargs": kwargs})
        scripted = self._advance()
        if isinstance(scripted, dict):
            return scripted.get("content", "")
        return str(scripted)

    def complete_with_tools(
        self,
        messages: list[dict],
        tools: list[dict],
        **kwargs: Any,
    ) -> dict:
        self._calls.append(
            {"method": "complete_with_tools", "messages": messages, "tools": tools, "kwargs": kwargs}
        )
        return as_tool_response(self._advance())

    def _advance(self) -> str | dict:
        self.last_usage = self._usage
        scripted = self._script[self._position % len(self._script)]
        self._position += 1
        if isinstance(scripted, Exception):
            raise scripted
        return scripted

    def get_call_history(self) -> list[dict]:
        return list(self._calls)

    def get_call_count(self) -> int:
        return len(self._calls)

    def reset(self) -> None:
        self._position = 0
        self._calls.clear()

    def set_model(self, model: str) -> None:
        self._model = model

    def get_model(self) -> str:
        return self._model
