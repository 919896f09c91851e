from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from landregistry.config.models import AppConfig
from landregistry.domain.enums import ApplicationType, LandType


def test_defaults_match_fee_tables():
    schedule = AppConfig().fees.to_schedule()
    assert schedule.base_fee == Decimal("50000")
    assert schedule.land_type_multipliers[LandType.COMMERCIAL] == Decimal("2.0")
    assert schedule.application_type_multipliers[ApplicationType.MUTATION] == Decimal("0.8")
    assert schedule.priority_multipliers[5] == Decimal("5.0")


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("LANDREGISTRY_DB_URL", "sqlite:////tmp/elsewhere.db")
    monkeypatch.setenv("LANDREGISTRY_LOG_LEVEL", "debug")
    cfg = AppConfig.from_env()
    assert cfg.database.url == "sqlite:////tmp/elsewhere.db"
    assert cfg.logging.level == "DEBUG"


def test_from_yaml(tmp_path):
    path = tmp_path / "registry.yaml"
    path.write_text(
        "\n".join(
            [
                "database:",
                "  url: sqlite:///registry.db",
                "  lock_timeout_seconds: 1.5",
                "fees:",
                "  base_fee: 60000",
                "certificates:",
                "  number_prefix: TF",
                "  validity_years: null",
                "workflow:",
                "  require_payment_for_approval: true",
                "unknown_section: {a: 1}",
            ]
        ),
        encoding="utf-8",
    )
    cfg = AppConfig.from_yaml(path)
    assert cfg.database.url == "sqlite:///registry.db"
    assert cfg.database.lock_timeout_seconds == 1.5
    assert cfg.fees.base_fee == Decimal("60000")
    assert cfg.certificates.number_prefix == "TF"
    assert cfg.certificates.validity_years is None
    assert cfg.workflow.require_payment_for_approval is True
    assert cfg.raw["unknown_section"] == {"a": 1}


def test_from_yaml_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        AppConfig.from_yaml(tmp_path / "nope.yaml")


def test_processing_schedule_from_config():
    schedule = AppConfig().processing.to_schedule()
    assert schedule.estimate("subdivision", 2) == 30


@pytest.mark.parametrize(
    "data",
    [
        {"database": {"lock_timeout_seconds": 0}},
        {"fees": {"priority_multipliers": {1: 1.0, 2: 1.5}}},
        {"certificates": {"verification_code_bytes": 4}},
        {"logging": {"level": "LOUD"}},
    ],
)
def test_invalid_values_fail_at_load(data):
    with pytest.raises(ValidationError):
        AppConfig(**data)
