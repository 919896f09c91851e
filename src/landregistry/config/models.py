"""
Pydantic configuration models, loadable from YAML or the environment.
"""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from landregistry.domain.fees import PRIORITY_LEVELS, FeeSchedule, ProcessingSchedule
from landregistry.infrastructure.stores.sqlalchemy_db import DEFAULT_LOCK_TIMEOUT_SECONDS, get_db_url


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore")


class DatabaseConfig(_Section):
    url: str = Field(default_factory=get_db_url)
    lock_timeout_seconds: float = Field(default=DEFAULT_LOCK_TIMEOUT_SECONDS, gt=0)
    auto_create_schema: bool = True
    echo: bool = False


class FeeConfig(_Section):
    base_fee: Decimal = Field(default=Decimal("50000"), ge=0)
    area_rate_per_hectare: Decimal = Field(default=Decimal("1000"), ge=0)
    currency: str = "XAF"
    # XAF has no minor unit
    minor_unit_exponent: int = Field(default=0, ge=0, le=4)
    land_type_multipliers: Dict[str, Decimal] = Field(
        default_factory=lambda: {
            "residential": Decimal("1.0"),
            "commercial": Decimal("2.0"),
            "agricultural": Decimal("0.5"),
            "industrial": Decimal("1.5"),
        }
    )
    application_type_multipliers: Dict[str, Decimal] = Field(
        default_factory=lambda: {
            "registration": Decimal("1.0"),
            "transfer": Decimal("1.2"),
            "subdivision": Decimal("1.5"),
            "mutation": Decimal("0.8"),
        }
    )
    priority_multipliers: Dict[int, Decimal] = Field(
        default_factory=lambda: {
            1: Decimal("1.0"),
            2: Decimal("1.5"),
            3: Decimal("2.0"),
            4: Decimal("3.0"),
            5: Decimal("5.0"),
        }
    )

    @field_validator("priority_multipliers")
    @classmethod
    def _all_priorities(cls, value: Dict[int, Decimal]) -> Dict[int, Decimal]:
        missing = [p for p in PRIORITY_LEVELS if p not in value]
        if missing:
            raise ValueError(f"priority_multipliers is missing levels {missing}")
        return value

    def to_schedule(self) -> FeeSchedule:
        return FeeSchedule.from_tables(
            base_fee=self.base_fee,
            area_rate_per_hectare=self.area_rate_per_hectare,
            land_type_multipliers=self.land_type_multipliers,
            application_type_multipliers=self.application_type_multipliers,
            priority_multipliers=self.priority_multipliers,
            currency=self.currency,
            minor_unit_exponent=self.minor_unit_exponent,
        )


class ProcessingConfig(_Section):
    estimated_days: Dict[str, int] = Field(
        default_factory=lambda: {"registration": 30, "transfer": 21, "subdivision": 45, "mutation": 14}
    )
    priority_reductions: Dict[str, Dict[int, int]] = Field(
        default_factory=lambda: {
            "registration": {1: 0, 2: 10, 3: 20, 4: 25, 5: 28},
            "transfer": {1: 0, 2: 7, 3: 14, 4: 18, 5: 20},
            "subdivision": {1: 0, 2: 15, 3: 25, 4: 35, 5: 40},
            "mutation": {1: 0, 2: 5, 3: 9, 4: 12, 5: 13},
        }
    )

    def to_schedule(self) -> ProcessingSchedule:
        return ProcessingSchedule.from_tables(self.estimated_days, self.priority_reductions)


class CertificateConfig(_Section):
    number_prefix: str = Field(default="CERT", min_length=1, max_length=16)
    validity_years: Optional[int] = Field(default=99, gt=0)
    verification_code_bytes: int = Field(default=16, ge=8, le=32)


class WorkflowConfig(_Section):
    require_payment_for_approval: bool = False


class LoggingConfig(_Section):
    level: str = Field(default_factory=lambda: os.getenv("LANDREGISTRY_LOG_LEVEL", "INFO"), validate_default=True)

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    fees: FeeConfig = Field(default_factory=FeeConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    certificates: CertificateConfig = Field(default_factory=CertificateConfig)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AppConfig":
        file_path = Path(path).expanduser()
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {file_path}")
        data = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
        return cls(**data, raw=data)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Defaults, with LANDREGISTRY_DB_URL and LANDREGISTRY_LOG_LEVEL honored."""
        return cls()
