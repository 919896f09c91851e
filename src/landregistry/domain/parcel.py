"""
Land parcel data model
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from landregistry.domain.enums import LandType, ParcelStatus


@dataclass
class Parcel:
    """A registrable unit of land."""

    # identity
    id: int
    parcel_uuid: str
    parcel_number: str

    # physical attributes
    location: str
    area: Decimal  # hectares
    land_type: LandType

    status: ParcelStatus = ParcelStatus.AVAILABLE
    market_value: Optional[Decimal] = None
    district: Optional[str] = None
    region: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_registered(self) -> bool:
        return self.status == ParcelStatus.REGISTERED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parcel_uuid": self.parcel_uuid,
            "parcel_number": self.parcel_number,
            "location": self.location,
            "area": str(self.area),
            "land_type": self.land_type.value,
            "status": self.status.value,
            "market_value": str(self.market_value) if self.market_value is not None else None,
            "district": self.district,
            "region": self.region,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
