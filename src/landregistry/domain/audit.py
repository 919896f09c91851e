from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from landregistry.domain.enums import AuditAction


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuditEvent:
    """
    Immutable record of a state-changing action.

    Audit events are append-only: once written they are never updated or deleted.
    """

    action: AuditAction
    detail: str
    actor_id: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    severity: str = "info"
    ts: datetime = field(default_factory=utcnow)
    event_uuid: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_uuid": self.event_uuid,
            "actor_id": self.actor_id,
            "action": self.action.value,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "detail": self.detail,
            "metadata": dict(self.metadata),
            "severity": self.severity,
            "ts": self.ts.isoformat(),
        }
