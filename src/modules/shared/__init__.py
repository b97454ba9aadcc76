"""
Shared domain foundations for every saga module.

- Domain exception hierarchy (`exceptions`)
- BaseService with config, event and logging helpers (`base_service`)
- Generic async repository (`base_repository`)

Only the exceptions are re-exported here; they have no infrastructure
dependencies and are imported by the database layer itself.
"""

from src.modules.shared.exceptions import (
    ConflictError,
    CooldownActiveError,
    ErrorSeverity,
    InsufficientResourcesError,
    InvariantViolationError,
    NotFoundError,
    PersistenceError,
    SagaDomainException,
    ValidationError,
)

__all__ = [
    "SagaDomainException",
    "ErrorSeverity",
    "ValidationError",
    "InsufficientResourcesError",
    "NotFoundError",
    "ConflictError",
    "CooldownActiveError",
    "PersistenceError",
    "InvariantViolationError",
]
