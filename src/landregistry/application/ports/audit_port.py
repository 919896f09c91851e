from __future__ import annotations

from typing import Any, List, Optional, Protocol, runtime_checkable

from landregistry.domain.audit import AuditEvent


@runtime_checkable
class AuditRecorderPort(Protocol):
    """
    Append-only audit sink.

    ``record`` writes into the caller's open transaction (``session``) so an audit
    event commits or rolls back together with the change it describes. Storage
    failures surface as AuditWriteError and abort the enclosing transaction.
    """

    def record(self, session: Any, event: AuditEvent) -> None:
        """Append one event inside ``session``'s transaction."""

    def list_events(
        self,
        *,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        actor_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[dict]:
        """Read back events, newest first."""
