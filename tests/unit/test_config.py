"""Tests for ResearchConfig."""

from unittest.mock import patch

import pytest

from research_agent.agent.config import ResearchConfig


class TestResearchConfig:
    """Tests for ResearchConfig."""

    def test_defaults(self) -> None:
        config = ResearchConfig()
        assert config.max_tokens == 1_000_000
        assert config.max_actions == 50
        assert config.evaluation_types is None
        assert config.require_attribution

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_tokens": 0},
            {"max_actions": -1},
            {"min_budget_floor": 1.0},
            {"evaluation_types": ("definitive", "politeness")},
        ],
    )
    def test_validation(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            ResearchConfig(**kwargs)

    def test_evaluation_types_become_tuple(self) -> None:
        config = ResearchConfig(evaluation_types=["definitive"])
        assert config.evaluation_types == ("definitive",)

    def test_from_env(self) -> None:
        env = {
            "RESEARCH_MAX_ACTIONS": "12",
            "RESEARCH_MIN_BUDGET_FLOOR": "0.2",
            "RESEARCH_EVALUATION_TYPES": "definitive, attribution",
            "RESEARCH_REQUIRE_ATTRIBUTION": "false",
        }
        with patch.dict("os.environ", env, clear=True):
            config = ResearchConfig.from_env(max_tokens=5000)
        assert config.max_actions == 12
        assert config.min_budget_floor == 0.2
        assert config.evaluation_types == ("definitive", "attribution")
        assert config.require_attribution is False
        assert config.max_tokens == 5000

    def test_to_dict(self) -> None:
        data = ResearchConfig(max_actions=7).to_dict()
        assert data["max_actions"] == 7
        assert "max_bad_attempts" in data
