"""Tests for the HolderTypes tag set."""

from __future__ import annotations

import pytest

from memecoin_risk_engine.classifier.holder_types import HolderTag, HolderTypes, default_types


class TestHolderTypes:
    def test_union_accumulates(self) -> None:
        types = HolderTypes.of(HolderTag.SNIPER).union([HolderTag.INSIDER])
        assert HolderTag.SNIPER in types
        assert HolderTag.INSIDER in types
        assert len(types) == 2

    def test_union_is_idempotent(self) -> None:
        types = HolderTypes.of("sniper")
        assert types.union(["sniper"]) is types

    def test_storage_order_is_canonical(self) -> None:
        types = HolderTypes.of(HolderTag.INSIDER, HolderTag.FRESH, HolderTag.SNIPER)
        assert types.to_storage() == "fresh,sniper,insider"

    def test_parse_round_trips_storage_form(self) -> None:
        types = HolderTypes.of(HolderTag.BUNDLER, HolderTag.BUNDLED)
        assert HolderTypes.parse(types.to_storage()) == types

    def test_parse_accepts_legacy_spellings(self) -> None:
        types = HolderTypes.parse("snipers, Insiders,unknown,")
        assert set(types) == {HolderTag.SNIPER, HolderTag.INSIDER, HolderTag.OTHER}

    def test_parse_empty(self) -> None:
        assert len(HolderTypes.parse(None)) == 0
        assert len(HolderTypes.parse("")) == 0

    def test_parse_rejects_unknown_tags(self) -> None:
        with pytest.raises(ValueError, match="Unknown holder tag"):
            HolderTypes.parse("sniper,whale")

    def test_contains_is_exact_not_substring(self) -> None:
        types = HolderTypes.of(HolderTag.BUNDLED)
        assert "bundler" not in types
        assert "bund" not in types
        assert 42 not in types

    def test_is_resolved(self) -> None:
        assert not HolderTypes.of(HolderTag.FRESH).is_resolved
        assert HolderTypes.of(HolderTag.FRESH, HolderTag.BUNDLED).is_resolved


class TestDefaultTypes:
    def test_zero_balance_is_other(self) -> None:
        assert default_types(received_at_mint=True, amount=0.0) == HolderTypes.of(HolderTag.OTHER)

    def test_received_at_mint_is_inception(self) -> None:
        assert default_types(received_at_mint=True, amount=5.0) == HolderTypes.of(HolderTag.INCEPTION)

    def test_otherwise_fresh(self) -> None:
        assert default_types(received_at_mint=False, amount=5.0) == HolderTypes.of(HolderTag.FRESH)
