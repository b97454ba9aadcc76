"""
Domain exceptions for the Gamemaster Saga core.

Purpose
-------
Define the structured, domain-specific exception hierarchy for saga game
logic. Services raise these for business rule violations, resource
constraints and player-facing errors. The presentation adapter turns them
into notices.

LES 2025 Compliance
-------------------
- Domain exceptions only (game rules, player-facing errors)
- Clear base class (`SagaDomainException`) with structured metadata
- Severity levels for logging decisions
- Retry hints and error codes for programmatic handling

Design Notes
------------
- `message` is the exact player-facing sentence. Services pass the final
  wording and the adapter surfaces `user_message` verbatim.
- `PersistenceError` hides the database failure behind a generic notice and
  keeps the original error in `details`.
- Zero-reward random outcomes are normal results, never exceptions.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected (cooldowns)
    INFO = "info"  # Normal gameplay rejections
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class SagaDomainException(Exception):
    """
    Base exception for all saga domain errors.

    Args:
        message: Player-facing message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise SagaDomainException(
        ...     "Cannot bond a unit to itself.",
        ...     {"host_id": 4},
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        """Text safe to show to the player."""
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ValidationError(SagaDomainException):
    """
    Raised when an action violates a static game rule.

    Args:
        message: Player-facing explanation
        field: Optional name of the offending input
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.field = field
        merged = dict(details or {})
        if field is not None:
            merged["field"] = field
        super().__init__(
            message,
            details=merged,
            error_code=f"VALIDATION_{field.upper()}" if field else "VALIDATION_ERROR",
        )


class InsufficientResourcesError(ValidationError):
    """
    Raised when a player lacks coins, AP, TP or materials.

    Args:
        message: Player-facing explanation
        resource: Resource type (e.g. "coins", "ap", "TamingLure")
        required: Amount required, when known
        current: Amount the player has, when known
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(
        self,
        message: str,
        resource: str = "resource",
        required: Optional[int] = None,
        current: Optional[int] = None,
    ) -> None:
        self.resource = resource
        self.required = required
        self.current = current
        details: Dict[str, Any] = {"resource": resource}
        if required is not None:
            details["required"] = required
        if current is not None:
            details["current"] = current
        super().__init__(message, details=details)
        self.error_code = f"INSUFFICIENT_{resource.upper()}"


class NotFoundError(SagaDomainException):
    """
    Raised when a requested entity does not exist or is unavailable.

    Also used by the tavern reroll transaction as the "cannot reroll right
    now" signal.

    Args:
        message: Player-facing explanation
        resource_type: Type of resource (e.g. "Unit", "Node", "Quest")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(
        self,
        message: str,
        resource_type: str = "Resource",
        identifier: Optional[Any] = None,
    ) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ConflictError(SagaDomainException):
    """Raised on uniqueness violations (bond exists, draft exists)."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details, error_code="CONFLICT")


class CooldownActiveError(SagaDomainException):
    """
    Raised when an action is still on cooldown.

    Args:
        action: Action on cooldown (e.g. "work:fishing")
        remaining_seconds: Seconds until the action is available again
    """

    DEFAULT_SEVERITY = ErrorSeverity.DEBUG
    DEFAULT_RETRYABLE = True

    def __init__(self, action: str, remaining_seconds: float, message: Optional[str] = None) -> None:
        self.action = action
        self.remaining_seconds = remaining_seconds
        super().__init__(
            message or f"You are tired. Try again in {_format_remaining(remaining_seconds)}.",
            details={"action": action, "remaining_seconds": remaining_seconds},
            error_code="COOLDOWN_ACTIVE",
        )


class PersistenceError(SagaDomainException):
    """
    Raised when a database operation fails underneath a game action.

    The player sees a generic notice; the original error stays in details.
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    USER_MESSAGE = "Something went wrong. Please try again."

    def __init__(self, operation: str, original_error: Optional[Exception] = None) -> None:
        self.operation = operation
        self.original_error = original_error
        details: Dict[str, Any] = {"operation": operation}
        if original_error is not None:
            details["error"] = str(original_error)
            details["error_type"] = type(original_error).__name__
        super().__init__(self.USER_MESSAGE, details=details, error_code="PERSISTENCE_ERROR")


class InvariantViolationError(SagaDomainException):
    """Raised when stored game data breaks an internal invariant."""

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details, error_code="INVARIANT_VIOLATION")


class ConfigurationError(SagaDomainException):
    """Raised when a required configuration key is missing or invalid."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key},
            error_code="CONFIG_ERROR",
        )


def _format_remaining(seconds: float) -> str:
    total = max(int(seconds), 0)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Args:
        exc: Exception to check

    Returns:
        True if error is retryable, False otherwise.
    """
    if isinstance(exc, SagaDomainException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """
    Get the severity level of an exception for logging.

    Args:
        exc: Exception to check

    Returns:
        ErrorSeverity level.
    """
    if isinstance(exc, SagaDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
