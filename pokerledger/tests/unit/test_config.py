"""
tests/unit/test_config.py — Config selection and env parsing.

No app or database is created; validate_production_config only needs an
object with a `config` mapping.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

import pytest

from pokerledger import config


def test_config_by_name_covers_every_environment():
    assert config.config_by_name == {
        "development": config.DevelopmentConfig,
        "testing": config.TestingConfig,
        "production": config.ProductionConfig,
    }


def test_module_exposes_no_env_resolved_config():
    exported = [
        name for name, value in vars(config).items()
        if isinstance(value, type) and issubclass(value, config.BaseConfig)
    ]
    assert sorted(exported) == [
        "BaseConfig", "DevelopmentConfig", "ProductionConfig", "TestingConfig",
    ]


def test_defaults_round_to_whole_units_with_cent_tolerance():
    assert config.BaseConfig.SETTLEMENT_ROUNDING_UNIT == Decimal("1")
    assert config.BaseConfig.BALANCE_TOLERANCE == Decimal("0.01")
    assert config.TestingConfig.TESTING is True


@pytest.mark.parametrize("raw", ["abc", "-1", "0", "NaN", ""])
def test_bad_decimal_env_falls_back_to_default(monkeypatch, raw):
    monkeypatch.setenv("SETTLEMENT_ROUNDING_UNIT", raw)
    assert config._parse_decimal_env("SETTLEMENT_ROUNDING_UNIT", default="1") == Decimal("1")


def test_decimal_env_is_read(monkeypatch):
    monkeypatch.setenv("SETTLEMENT_ROUNDING_UNIT", "0.5")
    assert config._parse_decimal_env("SETTLEMENT_ROUNDING_UNIT", default="1") == Decimal("0.5")


def test_production_requires_real_jwt_secret():
    app = SimpleNamespace(config={
        "SQLALCHEMY_DATABASE_URI": "postgresql://db/pokerledger",
        "SECRET_KEY": "s3cret",
        "JWT_SECRET_KEY": "change-me-in-production",
    })

    with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
        config.validate_production_config(app)
