"""
Transactional coordinator.

All cross-entity effects (parcel status, application status, certificate rows and
audit events) are persisted through ``TransactionalCoordinator.run_in_transaction``:
one session, one database transaction, commit or full rollback.

Double-registration protocol: the approval path locks the parcel row
(``SELECT ... FOR UPDATE``; on SQLite every transaction opens with ``BEGIN IMMEDIATE``)
and recounts approved applications inside the same transaction. The partial
unique indexes on ``land_applications`` catch anything that slips past at commit.

Audit guard: a unit of work that flushed a non-audit write without recording an
audit event is refused and rolled back.
"""

from __future__ import annotations

import functools
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from landregistry.application.ports.audit_port import AuditRecorderPort
from landregistry.core.errors import AuditWriteError, StorageError, TransactionTimeoutError
from landregistry.domain.audit import AuditEvent, utcnow
from landregistry.domain.enums import AuditAction
from landregistry.infrastructure.logging import AUDIT_LOGGER_NAME
from landregistry.infrastructure.stores.models import AuditEventModel
from landregistry.infrastructure.stores.sqlalchemy_db import SessionProvider

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)

T = TypeVar("T")

_WRITES_KEY = "landregistry.domain_writes"

# lock_not_available, query_canceled (statement_timeout)
_PG_TIMEOUT_CODES = {"55P03", "57014"}


@event.listens_for(Session, "after_flush")
def _count_domain_writes(session: Session, flush_context) -> None:
    # new/dirty/deleted still hold the pre-flush state here
    touched = [
        obj
        for obj in (*session.new, *session.dirty, *session.deleted)
        if not isinstance(obj, AuditEventModel)
    ]
    if touched:
        session.info[_WRITES_KEY] = session.info.get(_WRITES_KEY, 0) + len(touched)


def is_lock_timeout(exc: BaseException) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(getattr(orig, "diag", None), "sqlstate", None)
    if code in _PG_TIMEOUT_CODES:
        return True
    message = str(orig or exc).lower()
    return "database is locked" in message or "lock timeout" in message


@dataclass
class UnitOfWork:
    """Handle passed to transactional work: the open session plus an audit sink."""

    session: Session
    now: datetime
    _recorder: AuditRecorderPort
    events: List[AuditEvent] = field(default_factory=list)

    def record(
        self,
        action: AuditAction,
        detail: str,
        *,
        actor_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        severity: str = "info",
    ) -> AuditEvent:
        audit_event = AuditEvent(
            action=action,
            detail=detail,
            actor_id=actor_id,
            resource_type=resource_type,
            resource_id=resource_id,
            metadata=dict(metadata or {}),
            severity=severity,
            ts=self.now,
        )
        self._recorder.record(self.session, audit_event)
        self.events.append(audit_event)
        return audit_event

    @property
    def domain_writes(self) -> int:
        return int(self.session.info.get(_WRITES_KEY, 0))


class TransactionalCoordinator:
    """Unit-of-work boundary for every mutating registry operation."""

    def __init__(
        self,
        provider: SessionProvider,
        recorder: AuditRecorderPort,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._provider = provider
        self._recorder = recorder
        self._clock = clock

    @property
    def provider(self) -> SessionProvider:
        return self._provider

    def now(self) -> datetime:
        return self._clock()

    def run_in_transaction(self, work: Callable[[UnitOfWork], T]) -> T:
        with self._provider.session() as session:
            uow = UnitOfWork(session=session, now=self._clock(), _recorder=self._recorder)
            try:
                result = work(uow)
                session.flush()
                if uow.domain_writes and not uow.events:
                    raise AuditWriteError(
                        message="Refusing to commit a mutating unit of work without an audit event",
                        context={"writes": uow.domain_writes},
                    )
                session.commit()
            except DBAPIError as e:
                session.rollback()
                raise self._storage_error(e) from e
            except SQLAlchemyError as e:
                session.rollback()
                raise StorageError(message=f"Database operation failed: {e}") from e
            except BaseException:
                session.rollback()
                raise
            finally:
                session.info.pop(_WRITES_KEY, None)

        for audit_event in uow.events:
            audit_logger.info(json.dumps(audit_event.to_dict(), ensure_ascii=False, default=str))
        return result

    def read(self, work: Callable[[Session], T]) -> T:
        """Run read-only work in its own session; nothing is committed."""
        with self._provider.session() as session:
            try:
                return work(session)
            except DBAPIError as e:
                raise self._storage_error(e) from e
            finally:
                session.rollback()

    def _storage_error(self, exc: DBAPIError) -> StorageError:
        if is_lock_timeout(exc):
            logger.warning("Transaction timed out waiting for a lock: %s", exc.orig)
            return TransactionTimeoutError(
                message="Timed out waiting for a database lock; retry the operation",
                context={"lock_timeout_seconds": self._provider.lock_timeout_seconds},
            )
        logger.error("Database operation failed: %s", exc.orig)
        return StorageError(message=f"Database operation failed: {exc.orig}")


def transactional(method: Callable[..., T]) -> Callable[..., T]:
    """
    Run a service method inside a unit of work.

    The wrapped method takes ``uow`` as its first argument after ``self``. Callers
    either omit it (a fresh transaction is opened through ``self.coordinator``) or pass
    ``uow=`` to join a transaction that is already open.
    """

    @functools.wraps(method)
    def wrapper(self, *args: Any, uow: Optional[UnitOfWork] = None, **kwargs: Any) -> T:
        if uow is not None:
            return method(self, uow, *args, **kwargs)
        return self.coordinator.run_in_transaction(lambda u: method(self, u, *args, **kwargs))

    return wrapper
