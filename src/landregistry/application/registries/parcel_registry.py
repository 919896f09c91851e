"""
Parcel registry: owns land-parcel records and their status.

Parcels are created by registry operators and only ever move to ``registered`` as a
side effect of an approval. There is no public "mark available" here; reversing a
registration is a separate adjudication process.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from loguru import logger

from landregistry.core.errors import (
    DuplicateParcelNumberError,
    InvalidInputError,
    ParcelNotFoundError,
)
from landregistry.domain.commands import MarkRegistered
from landregistry.domain.enums import AuditAction, ParcelStatus
from landregistry.domain.fees import parse_area, parse_land_type
from landregistry.domain.parcel import Parcel
from landregistry.infrastructure.stores.repositories import ParcelRepository, parcel_from_model
from landregistry.infrastructure.stores.unit_of_work import (
    TransactionalCoordinator,
    UnitOfWork,
    transactional,
)

MIN_PARCEL_NUMBER_LENGTH = 3
MIN_LOCATION_LENGTH = 5
# matches the NUMERIC(12, 4) area column
AREA_QUANTUM = Decimal("0.0001")
MAX_AREA = Decimal("99999999.9999")


def _parse_market_value(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInputError(message=f"Market value is not a number: {value!r}") from None
    if not amount.is_finite() or amount < 0:
        raise InvalidInputError(message=f"Market value cannot be negative, got {value!r}")
    return amount


def _parse_stored_area(value: Any) -> Decimal:
    area = parse_area(value)
    if area > MAX_AREA:
        raise InvalidInputError(message=f"Area cannot exceed {MAX_AREA} hectares, got {value!r}")
    area = area.quantize(AREA_QUANTUM, rounding=ROUND_HALF_UP)
    if area <= 0:
        raise InvalidInputError(
            message=f"Area must be at least {AREA_QUANTUM} hectares, got {value!r}",
            context={"area": str(value)},
        )
    return area


def _parse_parcel_status(value: Any) -> ParcelStatus:
    try:
        return ParcelStatus(value)
    except ValueError:
        raise InvalidInputError(
            message=f"Unknown parcel status: {value!r}",
            context={"allowed": [s.value for s in ParcelStatus]},
        ) from None


def _parse_text(value: Any, field_name: str, min_length: int) -> str:
    text = str(value or "").strip()
    if len(text) < min_length:
        raise InvalidInputError(
            message=f"{field_name} must be at least {min_length} characters",
            context={field_name: value},
        )
    return text


class ParcelRegistry:
    def __init__(self, coordinator: TransactionalCoordinator):
        self.coordinator = coordinator

    @transactional
    def create(
        self,
        uow: UnitOfWork,
        parcel_number: str,
        location: str,
        area: Any,
        land_type: Any,
        *,
        market_value: Any = None,
        district: Optional[str] = None,
        region: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Parcel:
        number = _parse_text(parcel_number, "parcel_number", MIN_PARCEL_NUMBER_LENGTH)
        where = _parse_text(location, "location", MIN_LOCATION_LENGTH)
        parsed_area = _parse_stored_area(area)
        parsed_type = parse_land_type(land_type)
        value = _parse_market_value(market_value)

        repo = ParcelRepository(uow.session)
        if repo.get_by_number(number) is not None:
            logger.warning(f"Rejected duplicate parcel number {number}")
            raise DuplicateParcelNumberError(
                message=f"Parcel number {number} already exists",
                context={"parcel_number": number},
            )

        row = repo.add(
            parcel_number=number,
            location=where,
            area=parsed_area,
            land_type=parsed_type,
            market_value=value,
            district=district,
            region=region,
            now=uow.now,
        )
        uow.record(
            AuditAction.PARCEL_CREATED,
            f"Parcel {number} created",
            actor_id=actor_id,
            resource_type="parcel",
            resource_id=row.id,
            metadata={"parcel_number": number, "area": str(parsed_area), "land_type": parsed_type.value},
        )
        logger.info(f"Parcel {number} created (id={row.id})")
        return parcel_from_model(row)

    def get(self, parcel_id: int) -> Parcel:
        def _work(session):
            row = ParcelRepository(session).get(parcel_id)
            if row is None:
                raise ParcelNotFoundError(message=f"Parcel {parcel_id} not found", context={"parcel_id": parcel_id})
            return parcel_from_model(row)

        return self.coordinator.read(_work)

    def get_by_number(self, parcel_number: str) -> Parcel:
        def _work(session):
            row = ParcelRepository(session).get_by_number(parcel_number)
            if row is None:
                raise ParcelNotFoundError(
                    message=f"Parcel {parcel_number} not found",
                    context={"parcel_number": parcel_number},
                )
            return parcel_from_model(row)

        return self.coordinator.read(_work)

    def search(
        self,
        *,
        parcel_number: Optional[str] = None,
        location: Optional[str] = None,
        land_type: Any = None,
        status: Any = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Parcel]:
        parsed_type = parse_land_type(land_type) if land_type is not None else None
        parsed_status = _parse_parcel_status(status) if status is not None else None

        def _work(session):
            rows = ParcelRepository(session).search(
                parcel_number=parcel_number,
                location=location,
                land_type=parsed_type,
                status=parsed_status,
                limit=limit,
                offset=offset,
            )
            return [parcel_from_model(r) for r in rows]

        return self.coordinator.read(_work)

    def stats(self) -> Dict[str, Any]:
        return self.coordinator.read(lambda session: ParcelRepository(session).stats())

    # ---- in-transaction helpers used by the application workflow ----

    def lock(self, uow: UnitOfWork, parcel_id: int) -> Parcel:
        """Load the parcel holding its row lock until ``uow`` ends."""
        row = ParcelRepository(uow.session).lock(parcel_id)
        if row is None:
            raise ParcelNotFoundError(message=f"Parcel {parcel_id} not found", context={"parcel_id": parcel_id})
        return parcel_from_model(row)

    def mark_registered(self, uow: UnitOfWork, parcel_id: int) -> Parcel:
        repo = ParcelRepository(uow.session)
        row = repo.get(parcel_id)
        if row is None:
            raise ParcelNotFoundError(message=f"Parcel {parcel_id} not found", context={"parcel_id": parcel_id})
        repo.apply(row, MarkRegistered(), uow.now)
        return parcel_from_model(row)

    def count_approved_applications(self, uow: UnitOfWork, parcel_id: int) -> int:
        # only meaningful inside the transaction that holds the parcel lock
        return ParcelRepository(uow.session).count_approved_applications(parcel_id)

