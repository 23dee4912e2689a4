"""Tests for ModelConfig."""

from unittest.mock import patch

from research_agent.llm.model_config import ModelConfig


class TestModelConfig:
    """Tests for ModelConfig."""

    def test_defaults(self) -> None:
        config = ModelConfig()
        assert config.name is None
        assert config.temperature == 0.0
        assert config.max_tokens == 2048

    def test_to_llm_kwargs_omits_unset_model(self) -> None:
        assert ModelConfig().to_llm_kwargs() == {"temperature": 0.0, "max_tokens": 2048}

    def test_to_llm_kwargs_with_model_and_extras(self) -> None:
        config = ModelConfig(name="claude-x", temperature=0.3, extra_kwargs={"top_p": 0.9})
        assert config.to_llm_kwargs() == {
            "temperature": 0.3,
            "max_tokens": 2048,
            "model": "claude-x",
            "top_p": 0.9,
        }

    def test_from_env(self) -> None:
        env = {
            "RESEARCH_MODEL": "claude-env",
            "RESEARCH_TEMPERATURE": "0.7",
            "RESEARCH_MAX_OUTPUT_TOKENS": "512",
        }
        with patch.dict("os.environ", env, clear=True):
            config = ModelConfig.from_env()
        assert config.name == "claude-env"
        assert config.temperature == 0.7
        assert config.max_tokens == 512

    def test_from_env_keeps_defaults(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            config = ModelConfig.from_env(max_tokens=99)
        assert config.max_tokens == 99
        assert config.name is None

    def test_to_dict_copies_extras(self) -> None:
        config = ModelConfig(extra_kwargs={"a": 1})
        data = config.to_dict()
        data["extra_kwargs"]["a"] = 2
        assert config.extra_kwargs == {"a": 1}
