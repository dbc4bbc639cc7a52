"""Test that the project setup is working correctly."""

import memecoin_risk_engine


def test_version() -> None:
    """Test that version is defined."""
    assert memecoin_risk_engine.__version__ == "0.1.0"


def test_import_modules() -> None:
    """Test that all submodules can be imported."""
    from memecoin_risk_engine import alerter
    from memecoin_risk_engine import backtest
    from memecoin_risk_engine import classifier
    from memecoin_risk_engine import reputation
    from memecoin_risk_engine import scoring
    from memecoin_risk_engine import storage
    from memecoin_risk_engine import training

    # Just verify imports work
    assert alerter is not None
    assert backtest is not None
    assert classifier is not None
    assert reputation is not None
    assert scoring is not None
    assert storage is not None
    assert training is not None
