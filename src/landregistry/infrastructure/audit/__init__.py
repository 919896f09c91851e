from .sqlalchemy_audit_recorder import SqlAlchemyAuditRecorder

__all__ = ["SqlAlchemyAuditRecorder"]
