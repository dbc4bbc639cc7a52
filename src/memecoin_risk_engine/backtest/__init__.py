"""Backtesting, stratified sampling and threshold retune."""
