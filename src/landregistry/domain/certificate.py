from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from landregistry.domain.enums import CertificateStatus, VerificationFailure


def canonical_certificate_content(
    *,
    certificate_number: str,
    parcel_id: int,
    application_id: int,
    issued_by: str,
    issued_at: datetime,
) -> str:
    """Stable JSON form of the fields covered by the integrity hash."""
    payload = {
        "application_id": int(application_id),
        "certificate_number": certificate_number,
        "issued_at": issued_at.isoformat(),
        "issued_by": issued_by,
        "parcel_id": int(parcel_id),
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_certificate_hash(**content: Any) -> str:
    return hashlib.sha256(canonical_certificate_content(**content).encode("utf-8")).hexdigest()


@dataclass
class Certificate:
    """Durable proof of registered ownership, bound 1:1 to an approved application."""

    id: int
    certificate_uuid: str
    certificate_number: str
    parcel_id: int
    application_id: int
    issued_by: str
    issued_at: datetime
    status: CertificateStatus
    certificate_hash: str
    verification_code: str

    expires_at: Optional[datetime] = None
    revocation_reason: Optional[str] = None
    revoked_by: Optional[str] = None
    revoked_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def expected_hash(self) -> str:
        return compute_certificate_hash(
            certificate_number=self.certificate_number,
            parcel_id=self.parcel_id,
            application_id=self.application_id,
            issued_by=self.issued_by,
            issued_at=self.issued_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "certificate_uuid": self.certificate_uuid,
            "certificate_number": self.certificate_number,
            "parcel_id": self.parcel_id,
            "application_id": self.application_id,
            "issued_by": self.issued_by,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "status": self.status.value,
            "certificate_hash": self.certificate_hash,
            "verification_code": self.verification_code,
            "revocation_reason": self.revocation_reason,
            "revoked_by": self.revoked_by,
            "revoked_at": self.revoked_at.isoformat() if self.revoked_at else None,
            "metadata": dict(self.metadata),
        }


@dataclass
class VerificationResult:
    """Outcome of a public certificate check; failures are values, not errors."""

    valid: bool
    reason: Optional[VerificationFailure] = None
    certificate_number: Optional[str] = None
    status: Optional[CertificateStatus] = None
    issued_at: Optional[datetime] = None

    @classmethod
    def ok(cls, certificate: Certificate) -> "VerificationResult":
        return cls(
            valid=True,
            certificate_number=certificate.certificate_number,
            status=certificate.status,
            issued_at=certificate.issued_at,
        )

    @classmethod
    def fail(cls, reason: VerificationFailure, certificate: Optional[Certificate] = None) -> "VerificationResult":
        if certificate is None:
            return cls(valid=False, reason=reason)
        return cls(
            valid=False,
            reason=reason,
            certificate_number=certificate.certificate_number,
            status=certificate.status,
            issued_at=certificate.issued_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"valid": self.valid}
        if self.reason is not None:
            d["reason"] = self.reason.value
        if self.certificate_number:
            d["certificate_number"] = self.certificate_number
        if self.status is not None:
            d["status"] = self.status.value
        if self.issued_at is not None:
            d["issued_at"] = self.issued_at.isoformat()
        return d
