"""Alerting layer - rules and message formatting."""

from memecoin_risk_engine.alerter.formatter import format_alert_message, risk_caveats, why_reasons
from memecoin_risk_engine.alerter.rules import DEFAULT_RULES, AlertRule, AlertType, RuleConfigError, TokenView

__all__ = [
    "DEFAULT_RULES",
    "AlertRule",
    "AlertType",
    "RuleConfigError",
    "TokenView",
    "format_alert_message",
    "risk_caveats",
    "why_reasons",
]
