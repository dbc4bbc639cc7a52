"""Tests for BundlerDetector."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from memecoin_risk_engine.classifier.bundler import BundlerDetector
from memecoin_risk_engine.classifier.models import Buy, Transfer

LAUNCH = datetime(2025, 3, 4, 12, 0, tzinfo=UTC)


def _fund(funder: str, wallet: str, minute: float) -> Transfer:
    return Transfer(src_wallet=funder, dst_wallet=wallet, ts=LAUNCH + timedelta(minutes=minute), amount_sol=0.5)


def _buy(wallet: str, minute: float) -> Buy:
    return Buy(wallet=wallet, ts=LAUNCH + timedelta(minutes=minute), signature=f"buy-{wallet}-{minute}")


class TestBundlerDetectorInit:
    def test_default_parameters(self) -> None:
        detector = BundlerDetector()
        assert detector.window == timedelta(minutes=15)
        assert detector.min_wallets == 5

    @pytest.mark.parametrize("kwargs", [{"window_minutes": 0}, {"min_wallets": 0}])
    def test_rejects_invalid_parameters(self, kwargs: dict[str, int]) -> None:
        with pytest.raises(ValueError):
            BundlerDetector(**kwargs)


class TestDetect:
    def test_six_funded_buyers_flag_the_funder(self) -> None:
        wallets = [f"r{i}" for i in range(6)]
        transfers = [_fund("W", w, 1 + i) for i, w in enumerate(wallets)]
        buys = [_buy(w, 8 + i) for i, w in enumerate(wallets)]

        findings = BundlerDetector().detect(launch_at=LAUNCH, transfers=transfers, buys=buys)

        assert len(findings) == 1
        assert findings[0].bundler == "W"
        assert findings[0].recipients == frozenset(wallets)
        assert findings[0].first_funded_at == LAUNCH + timedelta(minutes=1)

    def test_four_funded_buyers_are_not_enough(self) -> None:
        wallets = [f"r{i}" for i in range(4)]
        transfers = [_fund("W", w, 1) for w in wallets]
        buys = [_buy(w, 2) for w in wallets]

        assert BundlerDetector().detect(launch_at=LAUNCH, transfers=transfers, buys=buys) == []

    def test_buy_before_funding_does_not_count(self) -> None:
        wallets = [f"r{i}" for i in range(5)]
        transfers = [_fund("W", w, 5) for w in wallets]
        buys = [_buy(w, 6) for w in wallets[:4]] + [_buy(wallets[4], 2)]

        assert BundlerDetector().detect(launch_at=LAUNCH, transfers=transfers, buys=buys) == []

    def test_activity_outside_window_is_ignored(self) -> None:
        wallets = [f"r{i}" for i in range(5)]
        transfers = [_fund("W", w, 1) for w in wallets[:4]] + [_fund("W", wallets[4], 16)]
        buys = [_buy(w, 10) for w in wallets]

        assert BundlerDetector().detect(launch_at=LAUNCH, transfers=transfers, buys=buys) == []

    def test_repeat_funding_counts_wallet_once(self) -> None:
        transfers = [_fund("W", "r0", m) for m in (1, 2, 3, 4, 5)]
        buys = [_buy("r0", 6)]
        assert BundlerDetector(min_wallets=2).detect(launch_at=LAUNCH, transfers=transfers, buys=buys) == []

    def test_findings_are_ordered_by_first_funding(self) -> None:
        transfers = [_fund("late", f"a{i}", 4) for i in range(2)] + [_fund("early", f"b{i}", 1) for i in range(2)]
        buys = [_buy(f"a{i}", 5) for i in range(2)] + [_buy(f"b{i}", 5) for i in range(2)]

        findings = BundlerDetector(min_wallets=2).detect(launch_at=LAUNCH, transfers=transfers, buys=buys)

        assert [f.bundler for f in findings] == ["early", "late"]
