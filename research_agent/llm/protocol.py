"""Interface every LLM client implements."""

from abc import ABC, abstractmethod
from typing import Any


class LLMClient(ABC):
    """
    Chat completion client used by the selector, evaluator and coder.

    Implementations may expose the usage of their most recent call as
    ``last_usage`` (a ``TokenUsage``) so wrappers can account for it.
    """

    last_usage: Any = None

    @abstractmethod
    def complete(self, messages: list[dict], **kwargs: Any) -> str:
        """
        Send messages and return the completion text.

        Args:
            messages: Message dicts with 'role' and 'content' keys.
            **kwargs: system, model, max_tokens, temperature.
        """
        pass

    @abstractmethod
    def complete_with_tools(
        self,
        messages: list[dict],
        tools: list[dict],
        **kwargs: Any,
    ) -> dict:
        """
        Send messages with tool definitions.

        Returns:
            Dict with "content" (text, may be empty), "tool_calls" (list of
            {"id", "name", "arguments"}) and "stop_reason".
        """
        pass

    @abstractmethod
    def set_model(self, model: str) -> None:
        pass

    @abstractmethod
    def get_model(self) -> str:
        pass
