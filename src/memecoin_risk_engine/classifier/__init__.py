"""Wallet classification layer - snipers, bundlers, insiders and holder classes."""

from memecoin_risk_engine.classifier.bundler import BundlerDetector
from memecoin_risk_engine.classifier.classes import compute_wallet_classes
from memecoin_risk_engine.classifier.graph import FundingGraph
from memecoin_risk_engine.classifier.holder_types import HolderTag, HolderTypes
from memecoin_risk_engine.classifier.insider import InsiderDetector
from memecoin_risk_engine.classifier.models import (
    BundleFinding,
    HolderSnapshot,
    InsiderVerdict,
    SniperFinding,
    WalletClassBreakdown,
)
from memecoin_risk_engine.classifier.sniper import SniperDetector

__all__ = [
    "BundleFinding",
    "BundlerDetector",
    "FundingGraph",
    "HolderSnapshot",
    "HolderTag",
    "HolderTypes",
    "InsiderDetector",
    "InsiderVerdict",
    "SniperDetector",
    "SniperFinding",
    "WalletClassBreakdown",
    "compute_wallet_classes",
]
