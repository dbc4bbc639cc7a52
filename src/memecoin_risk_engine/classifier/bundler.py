"""Bundler detection: one funder seeding many early buyers."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timedelta

from memecoin_risk_engine.classifier.models import BundleFinding, Buy, Transfer

DEFAULT_WINDOW_MINUTES = 15
DEFAULT_MIN_WALLETS = 5


class BundlerDetector:
    """Finds funders that, shortly after launch, fund wallets which then buy.

    A funder qualifies when at least `min_wallets` distinct wallets it funded
    inside the window go on to buy the token inside the same window, after
    being funded.
    """

    def __init__(
        self,
        *,
        window_minutes: int = DEFAULT_WINDOW_MINUTES,
        min_wallets: int = DEFAULT_MIN_WALLETS,
    ) -> None:
        """Initialize the bundler detector.

        Args:
            window_minutes: Minutes after launch in which funding and buys count.
            min_wallets: Distinct funded buyers needed to flag a funder.
        """
        if window_minutes <= 0:
            raise ValueError("window_minutes must be positive")
        if min_wallets < 1:
            raise ValueError("min_wallets must be >= 1")
        self.window = timedelta(minutes=window_minutes)
        self.min_wallets = min_wallets

    def detect(
        self,
        *,
        launch_at: datetime,
        transfers: Sequence[Transfer],
        buys: Sequence[Buy],
    ) -> list[BundleFinding]:
        window_end = launch_at + self.window

        first_buy: dict[str, datetime] = {}
        for buy in buys:
            if launch_at <= buy.ts <= window_end:
                prev = first_buy.get(buy.wallet)
                if prev is None or buy.ts < prev:
                    first_buy[buy.wallet] = buy.ts

        # funder -> funded wallet -> earliest funding time in window
        funded: dict[str, dict[str, datetime]] = defaultdict(dict)
        for transfer in transfers:
            if not (launch_at <= transfer.ts <= window_end):
                continue
            if transfer.src_wallet == transfer.dst_wallet:
                continue
            prev = funded[transfer.src_wallet].get(transfer.dst_wallet)
            if prev is None or transfer.ts < prev:
                funded[transfer.src_wallet][transfer.dst_wallet] = transfer.ts

        findings: list[BundleFinding] = []
        for funder, recipients in funded.items():
            buyers = {
                wallet: funded_at
                for wallet, funded_at in recipients.items()
                if wallet != funder and wallet in first_buy and first_buy[wallet] >= funded_at
            }
            if len(buyers) < self.min_wallets:
                continue
            findings.append(
                BundleFinding(
                    bundler=funder,
                    recipients=frozenset(buyers),
                    first_funded_at=min(buyers.values()),
                )
            )

        findings.sort(key=lambda f: (f.first_funded_at, f.bundler))
        return findings
