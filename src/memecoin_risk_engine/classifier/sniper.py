"""Sniper detection from buy slots relative to pool creation."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from memecoin_risk_engine.classifier.models import Buy, HolderSnapshot, SniperFinding

logger = logging.getLogger(__name__)

DEFAULT_SLOT_WINDOW = 2


class SniperDetector:
    """Flags wallets whose buy landed within a few slots of pool creation.

    When the launch has no slot data at all (no pool creation slot, or no
    buy carrying a slot) the detector falls back to wallet age: a holder
    created the same day is treated as a sniper.
    """

    def __init__(self, *, slot_window: int = DEFAULT_SLOT_WINDOW) -> None:
        if slot_window < 0:
            raise ValueError("slot_window must be >= 0")
        self.slot_window = slot_window

    def is_snipe(self, buy: Buy, *, pool_creation_slot: int) -> bool:
        if buy.slot is None:
            return False
        return pool_creation_slot <= buy.slot <= pool_creation_slot + self.slot_window

    def detect(
        self,
        *,
        buys: Sequence[Buy],
        holders: Sequence[HolderSnapshot],
        pool_creation_slot: int | None,
    ) -> SniperFinding:
        if pool_creation_slot is not None and any(b.slot is not None for b in buys):
            sniping = [b for b in buys if self.is_snipe(b, pool_creation_slot=pool_creation_slot)]
            return SniperFinding(
                wallets=frozenset(b.wallet for b in sniping),
                signatures=frozenset(b.signature for b in sniping if b.signature),
            )

        wallets = frozenset(
            h.owner for h in holders if h.wallet_age_days is not None and int(h.wallet_age_days) == 0
        )
        first_buy: dict[str, Buy] = {}
        for buy in sorted(buys, key=lambda b: b.ts):
            if buy.wallet in wallets:
                first_buy.setdefault(buy.wallet, buy)
        if wallets:
            logger.debug("Sniper fallback by wallet age: %d wallets", len(wallets))
        return SniperFinding(
            wallets=wallets,
            signatures=frozenset(b.signature for b in first_buy.values() if b.signature),
            used_fallback=True,
        )
