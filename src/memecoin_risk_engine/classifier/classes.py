"""Wallet class counts and holder concentration for a token."""

from __future__ import annotations

from collections.abc import Sequence

from memecoin_risk_engine.classifier.holder_types import HolderTag
from memecoin_risk_engine.classifier.models import HolderSnapshot, WalletClassBreakdown


def top_n_share(amounts: Sequence[float], n: int = 10) -> float:
    """Share of total balance held by the `n` largest holders."""
    positive = sorted((a for a in amounts if a > 0), reverse=True)
    total = sum(positive)
    if total <= 0:
        return 0.0
    return sum(positive[:n]) / total


def compute_wallet_classes(holders: Sequence[HolderSnapshot]) -> WalletClassBreakdown:
    """Count holders per class.

    Behavioural tags are counted independently (a holder may be both a
    sniper and an insider). Default tags only count for holders that no
    behavioural rule resolved; untagged holders count as `other`.
    """
    counts = {tag: 0 for tag in HolderTag}
    for holder in holders:
        types = holder.holder_types
        if len(types) == 0:
            counts[HolderTag.OTHER] += 1
            continue
        for tag in types:
            if tag in (HolderTag.FRESH, HolderTag.INCEPTION, HolderTag.OTHER) and types.is_resolved:
                continue
            counts[tag] += 1

    return WalletClassBreakdown(
        holders=len(holders),
        fresh_count=counts[HolderTag.FRESH],
        inception_count=counts[HolderTag.INCEPTION],
        sniper_count=counts[HolderTag.SNIPER],
        bundler_count=counts[HolderTag.BUNDLER],
        bundled_count=counts[HolderTag.BUNDLED],
        insider_count=counts[HolderTag.INSIDER],
        other_count=counts[HolderTag.OTHER],
        top10_share=top_n_share([h.amount for h in holders], 10),
    )
