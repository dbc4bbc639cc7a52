"""Versioned scoring strategies selected by configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from memecoin_risk_engine.scoring.health import (
    BasicHealthScorer,
    EnhancedHealthScorer,
    HealthInputs,
    HealthResult,
)
from memecoin_risk_engine.scoring.rug_risk import (
    BasicRugRiskScorer,
    EnhancedRugRiskScorer,
    RugRiskInputs,
    RugRiskResult,
)


class HealthScorer(Protocol):
    version: str

    def score(self, inputs: HealthInputs) -> HealthResult: ...


class RugRiskScorer(Protocol):
    version: str

    def score(self, inputs: RugRiskInputs) -> RugRiskResult: ...


class UnknownStrategyError(ValueError):
    """Raised when a scoring strategy version is not registered."""


@dataclass(frozen=True)
class ScoringStrategy:
    """Health and rug-risk scorers that belong to the same version."""

    version: str
    health: HealthScorer
    rug_risk: RugRiskScorer


STRATEGIES: dict[str, ScoringStrategy] = {
    "v1": ScoringStrategy(version="v1", health=BasicHealthScorer(), rug_risk=BasicRugRiskScorer()),
    "v2": ScoringStrategy(version="v2", health=EnhancedHealthScorer(), rug_risk=EnhancedRugRiskScorer()),
}


def get_strategy(version: str) -> ScoringStrategy:
    try:
        return STRATEGIES[version]
    except KeyError as e:
        raise UnknownStrategyError(
            f"Unknown scoring strategy {version!r}; expected one of {sorted(STRATEGIES)}"
        ) from e
