"""Tests for scoring strategy selection."""

from __future__ import annotations

import pytest

from memecoin_risk_engine.scoring.health import BasicHealthScorer, EnhancedHealthScorer
from memecoin_risk_engine.scoring.rug_risk import BasicRugRiskScorer, EnhancedRugRiskScorer
from memecoin_risk_engine.scoring.strategy import UnknownStrategyError, get_strategy


class TestGetStrategy:
    def test_v1_is_basic(self) -> None:
        strategy = get_strategy("v1")
        assert isinstance(strategy.health, BasicHealthScorer)
        assert isinstance(strategy.rug_risk, BasicRugRiskScorer)

    def test_v2_is_enhanced(self) -> None:
        strategy = get_strategy("v2")
        assert isinstance(strategy.health, EnhancedHealthScorer)
        assert isinstance(strategy.rug_risk, EnhancedRugRiskScorer)
        assert strategy.version == strategy.health.version == strategy.rug_risk.version

    def test_unknown_version(self) -> None:
        with pytest.raises(UnknownStrategyError, match="v3"):
            get_strategy("v3")

    def test_unknown_version_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            get_strategy("")
