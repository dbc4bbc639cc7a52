"""Wallet reputation and the bad-actor rollup."""

from memecoin_risk_engine.reputation.rollup import BadActorCounts, RollupResult, apply_rollup, count_bad_actors
from memecoin_risk_engine.reputation.scoring import ReputationScore, WalletActivity, compute_reputation

__all__ = [
    "BadActorCounts",
    "ReputationScore",
    "RollupResult",
    "WalletActivity",
    "apply_rollup",
    "compute_reputation",
    "count_bad_actors",
]
