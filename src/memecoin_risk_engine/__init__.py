"""Memecoin Risk Engine - wallet classification, scoring and adaptive alerting for Solana memecoins."""

__version__ = "0.1.0"
