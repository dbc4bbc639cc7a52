"""Outcome labels, feature engineering and the probability models."""
