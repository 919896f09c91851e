from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

import pytest

from landregistry.core.errors import InvalidInputError
from landregistry.domain.enums import ApplicationType, LandType
from landregistry.domain.fees import (
    DEFAULT_PROCESSING_SCHEDULE,
    FeeSchedule,
    ProcessingSchedule,
    compute_fee,
    parse_priority,
)


def _parcel(area, land_type="residential"):
    return SimpleNamespace(area=area, land_type=land_type)


class TestComputeFee:
    def test_registration_residential_normal_priority(self):
        assert compute_fee(_parcel(Decimal("2.5")), "registration", 1) == Decimal("52500")

    def test_multipliers_compose(self):
        # (50000 + 10 * 1000 * 2.0) * 1.2 * 1.5
        assert compute_fee(_parcel(10, "commercial"), "transfer", 2) == Decimal("126000")

    def test_agricultural_mutation_urgent(self):
        # (50000 + 3.3 * 1000 * 0.5) * 0.8 * 2.0
        assert compute_fee(_parcel("3.3", "agricultural"), ApplicationType.MUTATION, 3) == Decimal("82640")

    def test_rounds_half_up_to_whole_units(self):
        assert compute_fee(_parcel("0.0005"), "registration") == Decimal("50001")

    def test_float_area_keeps_literal_value(self):
        assert compute_fee(_parcel(0.1, LandType.INDUSTRIAL), "subdivision", 5) == Decimal("376125")

    def test_deterministic(self):
        parcel = _parcel("7.25", "industrial")
        first = compute_fee(parcel, "subdivision", 4)
        second = compute_fee(parcel, "subdivision", 4)
        assert first == second

    @pytest.mark.parametrize("area", [0, -1, "-0.5", "abc", None, "NaN", "Infinity"])
    def test_rejects_bad_area(self, area):
        with pytest.raises(InvalidInputError):
            compute_fee(_parcel(area), "registration")

    def test_rejects_unknown_land_type(self):
        with pytest.raises(InvalidInputError):
            compute_fee(_parcel(1, "swamp"), "registration")

    def test_rejects_unknown_application_type(self):
        with pytest.raises(InvalidInputError):
            compute_fee(_parcel(1), "lease")

    @pytest.mark.parametrize("priority", [0, 6, "1", 1.0, True, None])
    def test_rejects_bad_priority(self, priority):
        with pytest.raises(InvalidInputError):
            compute_fee(_parcel(1), "registration", priority)

    def test_custom_schedule_with_minor_units(self):
        schedule = FeeSchedule.from_tables(
            base_fee="100",
            area_rate_per_hectare="10.005",
            land_type_multipliers={"residential": 1, "commercial": 1, "agricultural": 1, "industrial": 1},
            application_type_multipliers={"registration": 1, "transfer": 1, "subdivision": 1, "mutation": 1},
            priority_multipliers={1: 1, 2: 1, 3: 1, 4: 1, 5: 1},
            currency="EUR",
            minor_unit_exponent=2,
        )
        assert schedule.quantum == Decimal("0.01")
        assert compute_fee(_parcel(1), "registration", 1, schedule) == Decimal("110.01")


class TestParsePriority:
    def test_accepts_all_levels(self):
        assert [parse_priority(p) for p in range(1, 6)] == [1, 2, 3, 4, 5]


class TestProcessingSchedule:
    @pytest.mark.parametrize(
        "app_type, priority, expected",
        [
            ("registration", 1, 30),
            ("registration", 2, 20),
            ("registration", 5, 2),
            ("transfer", 3, 7),
            ("subdivision", 4, 10),
            ("mutation", 5, 1),
        ],
    )
    def test_estimate(self, app_type, priority, expected):
        assert DEFAULT_PROCESSING_SCHEDULE.estimate(app_type, priority) == expected

    def test_estimate_never_below_one_day(self):
        schedule = ProcessingSchedule.from_tables({"registration": 5}, {"registration": {5: 10}})
        assert schedule.estimate("registration", 5) == 1

    def test_missing_table_entries_fall_back(self):
        schedule = ProcessingSchedule.from_tables({}, {})
        assert schedule.estimate("transfer", 3) == 30
