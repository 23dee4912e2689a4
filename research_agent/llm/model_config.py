"""Generation settings for each LLM-backed component."""

import os
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ModelConfig:
    """
    Model identifier and sampling parameters for one component.

    ``name=None`` means "use the client's default model".
    """

    name: str | None = None
    temperature: float = 0.0
    max_tokens: int = 2048
    extra_kwargs: dict[str, Any] = field(default_factory=dict)

    def to_llm_kwargs(self) -> dict[str, Any]:
        """Convert to kwargs suitable for LLM client calls."""
        kwargs: dict[str, Any] = {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.name:
            kwargs["model"] = self.name
        kwargs.update(self.extra_kwargs)
        return kwargs

    @classmethod
    def from_env(cls, prefix: str = "RESEARCH_", **defaults: Any) -> "ModelConfig":
        """Read {prefix}MODEL, {prefix}TEMPERATURE and {prefix}MAX_OUTPUT_TOKENS."""
        config = cls(**defaults)
        if name := os.environ.get(f"{prefix}MODEL"):
            config.name = name
        if temperature := os.environ.get(f"{prefix}TEMPERATURE"):
            config.temperature = float(temperature)
        if max_tokens := os.environ.get(f"{prefix}MAX_OUTPUT_TOKENS"):
            config.max_tokens = int(max_tokens)
        return config

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "extra_kwargs": self.extra_kwargs.copy(),
        }
