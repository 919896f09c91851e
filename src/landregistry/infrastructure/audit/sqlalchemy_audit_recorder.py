from __future__ import annotations

import logging
from typing import Any, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from landregistry.application.ports.audit_port import AuditRecorderPort
from landregistry.core.errors import AuditWriteError
from landregistry.domain.audit import AuditEvent
from landregistry.infrastructure.stores.models import AuditEventModel
from landregistry.infrastructure.stores.sqlalchemy_db import SessionProvider

logger = logging.getLogger(__name__)


class SqlAlchemyAuditRecorder(AuditRecorderPort):
    """
    Persist audit events into the registry database via SQLAlchemy.

    - record(): insert one row inside the caller's session, flush immediately so a
      storage failure aborts the enclosing transaction
    - list_events(): read back, newest first
    """

    def __init__(self, provider: SessionProvider):
        self._provider = provider

    def record(self, session: Session, event: AuditEvent) -> None:
        row = AuditEventModel(
            event_uuid=event.event_uuid,
            actor_id=event.actor_id,
            action=event.action.value,
            resource_type=event.resource_type,
            resource_id=event.resource_id,
            detail=event.detail,
            severity=event.severity,
            ts=event.ts,
        )
        row.set_metadata(event.metadata)
        try:
            session.add(row)
            session.flush()
        except SQLAlchemyError as e:
            logger.error("Audit write failed for %s: %s", event.action.value, e)
            raise AuditWriteError(
                message=f"Could not record audit event {event.action.value}",
                context={"event_uuid": event.event_uuid},
            ) from e

    def list_events(
        self,
        *,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        actor_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[dict]:
        with self._provider.session() as session:
            stmt = select(AuditEventModel)
            if action:
                stmt = stmt.where(AuditEventModel.action == action)
            if resource_type:
                stmt = stmt.where(AuditEventModel.resource_type == resource_type)
            if resource_id is not None:
                stmt = stmt.where(AuditEventModel.resource_id == resource_id)
            if actor_id:
                stmt = stmt.where(AuditEventModel.actor_id == actor_id)
            stmt = stmt.order_by(desc(AuditEventModel.ts), desc(AuditEventModel.id)).limit(limit)
            rows = session.execute(stmt).scalars()
            return [self._row_to_dict(r) for r in rows]

    @staticmethod
    def _row_to_dict(row: AuditEventModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "event_uuid": row.event_uuid,
            "actor_id": row.actor_id,
            "action": row.action,
            "resource_type": row.resource_type,
            "resource_id": row.resource_id,
            "detail": row.detail,
            "metadata": row.get_metadata(),
            "severity": row.severity,
            "ts": row.ts.isoformat(),
        }
