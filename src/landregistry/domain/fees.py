"""
Application fee and processing-time tables.

    fee = (base_fee + area * area_rate_per_hectare * land_type_multiplier)
          * application_type_multiplier
          * priority_multiplier

rounded half-up to the currency's minor unit (whole units for XAF).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Union

from landregistry.core.errors import InvalidInputError
from landregistry.domain.enums import ApplicationType, LandType

Number = Union[int, float, str, Decimal]

PRIORITY_LEVELS = (1, 2, 3, 4, 5)


def _dec(value: Number) -> Decimal:
    # go through str() so floats like 0.1 keep their literal value
    return value if isinstance(value, Decimal) else Decimal(str(value))


def parse_land_type(value: Any) -> LandType:
    try:
        return LandType(value)
    except ValueError:
        raise InvalidInputError(
            message=f"Unknown land type: {value!r}",
            context={"allowed": [t.value for t in LandType]},
        ) from None


def parse_application_type(value: Any) -> ApplicationType:
    try:
        return ApplicationType(value)
    except ValueError:
        raise InvalidInputError(
            message=f"Unknown application type: {value!r}",
            context={"allowed": [t.value for t in ApplicationType]},
        ) from None


def parse_priority(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value not in PRIORITY_LEVELS:
        raise InvalidInputError(
            message=f"Priority must be an integer between 1 and 5, got {value!r}",
            context={"priority": value},
        )
    return value


def parse_area(value: Any) -> Decimal:
    try:
        area = _dec(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInputError(message=f"Area is not a number: {value!r}") from None
    if not area.is_finite() or area <= 0:
        raise InvalidInputError(message=f"Area must be positive, got {value!r}", context={"area": str(value)})
    return area


@dataclass(frozen=True)
class FeeSchedule:
    base_fee: Decimal = Decimal("50000")
    area_rate_per_hectare: Decimal = Decimal("1000")
    currency: str = "XAF"
    minor_unit_exponent: int = 0
    land_type_multipliers: Mapping[LandType, Decimal] = field(
        default_factory=lambda: {
            LandType.RESIDENTIAL: Decimal("1.0"),
            LandType.COMMERCIAL: Decimal("2.0"),
            LandType.AGRICULTURAL: Decimal("0.5"),
            LandType.INDUSTRIAL: Decimal("1.5"),
        }
    )
    application_type_multipliers: Mapping[ApplicationType, Decimal] = field(
        default_factory=lambda: {
            ApplicationType.REGISTRATION: Decimal("1.0"),
            ApplicationType.TRANSFER: Decimal("1.2"),
            ApplicationType.SUBDIVISION: Decimal("1.5"),
            ApplicationType.MUTATION: Decimal("0.8"),
        }
    )
    priority_multipliers: Mapping[int, Decimal] = field(
        default_factory=lambda: {
            1: Decimal("1.0"),  # normal
            2: Decimal("1.5"),  # high
            3: Decimal("2.0"),  # urgent
            4: Decimal("3.0"),  # emergency
            5: Decimal("5.0"),  # critical
        }
    )

    @classmethod
    def from_tables(
        cls,
        *,
        base_fee: Number,
        area_rate_per_hectare: Number,
        land_type_multipliers: Mapping[str, Number],
        application_type_multipliers: Mapping[str, Number],
        priority_multipliers: Mapping[int, Number],
        currency: str = "XAF",
        minor_unit_exponent: int = 0,
    ) -> "FeeSchedule":
        return cls(
            base_fee=_dec(base_fee),
            area_rate_per_hectare=_dec(area_rate_per_hectare),
            currency=currency,
            minor_unit_exponent=minor_unit_exponent,
            land_type_multipliers={parse_land_type(k): _dec(v) for k, v in land_type_multipliers.items()},
            application_type_multipliers={
                parse_application_type(k): _dec(v) for k, v in application_type_multipliers.items()
            },
            priority_multipliers={int(k): _dec(v) for k, v in priority_multipliers.items()},
        )

    @property
    def quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.minor_unit_exponent)


DEFAULT_FEE_SCHEDULE = FeeSchedule()


def compute_fee(
    parcel: Any,
    application_type: Any,
    priority: Any = 1,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> Decimal:
    """
    Compute the application fee for ``parcel``.

    ``parcel`` only needs ``area`` and ``land_type`` attributes. Deterministic and
    side-effect free; raises InvalidInputError on malformed input.
    """
    area = parse_area(getattr(parcel, "area", None))
    land_type = parse_land_type(getattr(parcel, "land_type", None))
    app_type = parse_application_type(application_type)
    level = parse_priority(priority)

    try:
        land_multiplier = schedule.land_type_multipliers[land_type]
        type_multiplier = schedule.application_type_multipliers[app_type]
        priority_multiplier = schedule.priority_multipliers[level]
    except KeyError as e:
        raise InvalidInputError(message=f"Fee schedule has no multiplier for {e.args[0]!r}") from None

    amount = schedule.base_fee + area * schedule.area_rate_per_hectare * land_multiplier
    amount = amount * type_multiplier * priority_multiplier
    return amount.quantize(schedule.quantum, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ProcessingSchedule:
    """Estimated processing days per application type, shortened by priority."""

    estimated_days: Mapping[ApplicationType, int] = field(
        default_factory=lambda: {
            ApplicationType.REGISTRATION: 30,
            ApplicationType.TRANSFER: 21,
            ApplicationType.SUBDIVISION: 45,
            ApplicationType.MUTATION: 14,
        }
    )
    priority_reductions: Mapping[ApplicationType, Mapping[int, int]] = field(
        default_factory=lambda: {
            ApplicationType.REGISTRATION: {1: 0, 2: 10, 3: 20, 4: 25, 5: 28},
            ApplicationType.TRANSFER: {1: 0, 2: 7, 3: 14, 4: 18, 5: 20},
            ApplicationType.SUBDIVISION: {1: 0, 2: 15, 3: 25, 4: 35, 5: 40},
            ApplicationType.MUTATION: {1: 0, 2: 5, 3: 9, 4: 12, 5: 13},
        }
    )

    @classmethod
    def from_tables(
        cls,
        estimated_days: Mapping[str, int],
        priority_reductions: Mapping[str, Mapping[int, int]],
    ) -> "ProcessingSchedule":
        return cls(
            estimated_days={parse_application_type(k): int(v) for k, v in estimated_days.items()},
            priority_reductions={
                parse_application_type(k): {int(p): int(d) for p, d in table.items()}
                for k, table in priority_reductions.items()
            },
        )

    def estimate(self, application_type: Any, priority: Any = 1) -> int:
        app_type = parse_application_type(application_type)
        level = parse_priority(priority)
        base = self.estimated_days.get(app_type, 30)
        reduction: Dict[int, int] = dict(self.priority_reductions.get(app_type, {}))
        return max(1, base - reduction.get(level, 0))


DEFAULT_PROCESSING_SCHEDULE = ProcessingSchedule()
