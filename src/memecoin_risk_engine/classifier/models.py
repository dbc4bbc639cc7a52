"""Records consumed and produced by the wallet classifier."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from memecoin_risk_engine.classifier.holder_types import HolderTypes


@dataclass(frozen=True)
class HolderSnapshot:
    """Holder as seen by the detectors."""

    owner: str
    amount: float
    wallet_age_days: float | None = None
    received_at_mint: bool = False
    holder_types: HolderTypes = field(default_factory=HolderTypes)


@dataclass(frozen=True)
class Transfer:
    """Directed SOL transfer between two wallets."""

    src_wallet: str
    dst_wallet: str
    ts: datetime
    amount_sol: float = 0.0
    signature: str = ""


@dataclass(frozen=True)
class Buy:
    """Token buy by a wallet."""

    wallet: str
    ts: datetime
    slot: int | None = None
    signature: str = ""


@dataclass(frozen=True)
class InsiderVerdict:
    """Outcome of the insider heuristics for one holder.

    Attributes:
        wallet: Holder wallet.
        shares_funder: Funding lineage meets the dev wallet's lineage (F1).
        is_young: Wallet age within the fresh-age limit (F2).
        is_top_holder: Balance rank within the insider rank limit (F3).
        rank: 1-based balance rank among the token's holders.
        min_flags: Number of heuristics required.
    """

    wallet: str
    shares_funder: bool
    is_young: bool
    is_top_holder: bool
    rank: int
    min_flags: int = 2

    @property
    def flag_count(self) -> int:
        return int(self.shares_funder) + int(self.is_young) + int(self.is_top_holder)

    @property
    def is_insider(self) -> bool:
        return self.flag_count >= self.min_flags

    def to_dict(self) -> dict[str, Any]:
        return {
            "f1_shares_funder": self.shares_funder,
            "f2_young_wallet": self.is_young,
            "f3_top_holder": self.is_top_holder,
            "rank": self.rank,
            "flags": self.flag_count,
        }


@dataclass(frozen=True)
class BundleFinding:
    """Funder that seeded several early buyers of the same token."""

    bundler: str
    recipients: frozenset[str]
    first_funded_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "bundler": self.bundler,
            "recipients": sorted(self.recipients),
            "first_funded_at": self.first_funded_at.isoformat(),
        }


@dataclass(frozen=True)
class SniperFinding:
    """Wallets that sniped a launch and the buys that qualified them."""

    wallets: frozenset[str]
    signatures: frozenset[str]
    used_fallback: bool = False


@dataclass(frozen=True)
class WalletClassBreakdown:
    """Per-token wallet class counts and ratios (ratios in [0, 1])."""

    holders: int
    fresh_count: int
    inception_count: int
    sniper_count: int
    bundler_count: int
    bundled_count: int
    insider_count: int
    other_count: int
    top10_share: float

    def _pct(self, count: int) -> float:
        return count / self.holders if self.holders > 0 else 0.0

    @property
    def fresh_pct(self) -> float:
        return self._pct(self.fresh_count)

    @property
    def inception_pct(self) -> float:
        return self._pct(self.inception_count)

    @property
    def sniper_pct(self) -> float:
        return self._pct(self.sniper_count)

    @property
    def bundled_pct(self) -> float:
        return self._pct(self.bundled_count)

    @property
    def insider_pct(self) -> float:
        return self._pct(self.insider_count)

    @property
    def other_pct(self) -> float:
        return self._pct(self.other_count)
