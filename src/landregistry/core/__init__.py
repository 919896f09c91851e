"""
Core layer: shared error handling.
"""

from .errors import (
    ErrorSeverity,
    LandRegistryError,
    NotFoundError,
    ConflictError,
    InvalidTransitionError,
    InvalidInputError,
    StorageError,
    IntegrityViolationError,
)

__all__ = [
    "ErrorSeverity",
    "LandRegistryError",
    "NotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    "InvalidInputError",
    "StorageError",
    "IntegrityViolationError",
]
