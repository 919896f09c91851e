"""
Infrastructure layer: SQLAlchemy storage, the unit of work and the audit recorder.
"""
