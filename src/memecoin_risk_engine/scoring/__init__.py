"""Scoring layer - token health and rug-risk."""

from memecoin_risk_engine.scoring.health import BasicHealthScorer, EnhancedHealthScorer, HealthInputs, HealthResult
from memecoin_risk_engine.scoring.rug_risk import (
    BasicRugRiskScorer,
    EnhancedRugRiskScorer,
    RugRiskInputs,
    RugRiskResult,
    apply_hysteresis,
)
from memecoin_risk_engine.scoring.strategy import ScoringStrategy, UnknownStrategyError, get_strategy

__all__ = [
    "BasicHealthScorer",
    "BasicRugRiskScorer",
    "EnhancedHealthScorer",
    "EnhancedRugRiskScorer",
    "HealthInputs",
    "HealthResult",
    "RugRiskInputs",
    "RugRiskResult",
    "ScoringStrategy",
    "UnknownStrategyError",
    "apply_hysteresis",
    "get_strategy",
]
