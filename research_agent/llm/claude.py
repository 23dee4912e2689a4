"""Claude client built on the Anthropic SDK."""

import logging
import os
import time
from typing import Any

import anthropic

from .protocol import LLMClient
from .usage import TokenUsage

logger = logging.getLogger(__name__)

EMPTY_SCHEMA = {"type": "object", "properties": {}}


def to_anthropic_messages(messages: list[dict]) -> list[dict]:
    """
    Fold chat messages into Anthropic's alternating user/assistant turns.

    System messages are skipped because the system prompt travels as its own
    parameter. Unknown roles count as user turns, consecutive turns of one
    role are joined, and a leading assistant turn gets a user turn in front.
    """
    turns: list[dict] = []
    for message in messages:
        role = message.get("role", "user")
        if role == "system":
            continue
        role = "assistant" if role == "assistant" else "user"
        text = str(message.get("content", ""))
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"] = f"{turns[-1]['content']}\n\n{text}"
        else:
            turns.append({"role": role, "content": text})
    if turns and turns[0]["role"] == "assistant":
        turns.insert(0, {"role": "user", "content": "(context follows)"})
    return turns


def to_anthropic_tool(tool: dict) -> dict:
    """Accept a schema under "input_schema" or OpenAI-style "parameters"."""
    schema = tool.get("input_schema") or tool.get("parameters") or EMPTY_SCHEMA
    return {
        "name": tool["name"],
        "description": tool.get("description", ""),
        "input_schema": schema,
    }


def to_anthropic_tool_choice(choice: str | dict) -> dict:
    """
    Normalize a tool choice.

    "auto" and "any" map to their dict forms; any other string names the
    single tool the model must call.
    """
    if isinstance(choice, dict):
        return choice
    if choice in ("auto", "any"):
        return {"type": choice}
    return {"type": "tool", "name": choice}


def usage_from_response(response: Any) -> TokenUsage | None:
    usage = getattr(response, "usage", None)
    prompt = getattr(usage, "input_tokens", None)
    completion = getattr(usage, "output_tokens", None)
    if isinstance(prompt, int) and isinstance(completion, int):
        return TokenUsage(prompt_tokens=prompt, completion_tokens=completion)
    return None


def tool_response_from(response: Any) -> dict:
    """Flatten content blocks into {"content", "tool_calls", "stop_reason"}."""
    text_parts = []
    calls = []
    for block in response.content:
        if block.type == "text":
            text_parts.append(block.text)
        elif block.type == "tool_use":
            calls.append({"id": block.id, "name": block.name, "arguments": block.input})
    return {
        "content": "".join(text_parts),
        "tool_calls": calls,
        "stop_reason": response.stop_reason,
    }


def is_retryable(error: Exception) -> bool:
    """Rate limits, dropped connections and server errors are worth retrying."""
    if isinstance(error, (anthropic.RateLimitError, anthropic.APIConnectionError)):
        return True
    if isinstance(error, anthropic.APIStatusError):
        return error.status_code >= 500
    return False


class ClaudeClient(LLMClient):
    """
    LLM client for Claude via the Anthropic API.

    Every structured decision in the agent (action choice, evaluation
    verdicts, question classification) goes through ``complete_with_tools``
    with ``tool_choice="any"`` so the reply is always a tool call.
    """

    DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
    MAX_RETRIES = 3
    RETRY_DELAY = 1.0

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int = 4096,
        timeout: float = 120.0,
    ) -> None:
        """
        Initialize the Claude client.

        Args:
            api_key: Anthropic API key. Falls back to ANTHROPIC_API_KEY env var.
            model: Model to use. Falls back to RESEARCH_MODEL, then DEFAULT_MODEL.
            max_tokens: Default cap on reply tokens.
            timeout: Per-request timeout in seconds.
        """
        self._api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError(
                "API key required. Pass api_key or set ANTHROPIC_API_KEY env var."
            )

        self._client = anthropic.Anthropic(api_key=self._api_key, timeout=timeout)
        self._model = model or os.environ.get("RESEARCH_MODEL") or self.DEFAULT_MODEL
        self._max_tokens = max_tokens
        self.last_usage: TokenUsage | None = None

    def set_model(self, model: str) -> None:
        self._model = model

    def get_model(self) -> str:
        return self._model

    def complete(self, messages: list[dict], **kwargs: Any) -> str:
        """Send messages and return the text of the reply."""
        response = self._send(self._request(messages, None, kwargs))
        return "\n".join(block.text for block in response.content if block.type == "text")

    def complete_with_tools(
        self,
        messages: list[dict],
        tools: list[dict],
        **kwargs: Any,
    ) -> dict:
        """Send messages with tool definitions and return the parsed tool calls."""
        response = self._send(self._request(messages, tools, kwargs))
        return tool_response_from(response)

    def _request(self, messages: list[dict], tools: list[dict] | None, kwargs: dict) -> dict:
        request: dict[str, Any] = {
            "model": kwargs.pop("model", None) or self._model,
            "max_tokens": kwargs.pop("max_tokens", None) or self._max_tokens,
            "messages": to_anthropic_messages(messages),
        }
        system = kwargs.pop("system", None)
        if system:
            request["system"] = system
        if tools:
            request["tools"] = [to_anthropic_tool(t) for t in tools]
        choice = kwargs.pop("tool_choice", None)
        if tools and choice:
            request["tool_choice"] = to_anthropic_tool_choice(choice)
        request.update(kwargs)
        return request

    def _send(self, request: dict) -> Any:
        """Create a message, backing off exponentially on retryable errors."""
        for attempt in range(1, self.MAX_RETRIES + 1):
            try:
                response = self._client.messages.create(**request)
            except anthropic.APIError as e:
                if not is_retryable(e) or attempt == self.MAX_RETRIES:
                    raise
                delay = self.RETRY_DELAY * 2 ** (attempt - 1)
                logger.warning(
                    f"[LLM] {type(e).__name__} on attempt {attempt}/{self.MAX_RETRIES}; "
                    f"retrying in {delay:.1f}s"
                )
                time.sleep(delay)
                continue
            self.last_usage = usage_from_response(response)
            return response
        raise RuntimeError("unreachable")
