"""Typed failures for registry operations.

Every precondition violation raises one of the RegistryError subclasses
before any record is written. The host converts a raised error into the
standardized error response so callers can switch on a stable code.

Usage:
    from regnet.registry.errors import NotFoundError

    raise NotFoundError(
        "User does not exist",
        key=user_key,
        action="approveNewUser",
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error classification.

    - VALIDATION: Caller provided bad input
    - PERMISSION: Caller not authorized
    - RESOURCE: Record missing or already present
    - STATE: Record exists but is in the wrong status
    - SYSTEM: Internal error
    """

    VALIDATION = "validation"
    PERMISSION = "permission"
    RESOURCE = "resource"
    STATE = "state"
    SYSTEM = "system"


class ErrorCode(str, Enum):
    """Specific error codes for programmatic handling."""

    # Validation errors
    INVALID_ARGUMENT = "invalid_argument"

    # Permission errors
    NOT_AUTHORIZED = "not_authorized"
    INSUFFICIENT_BALANCE = "insufficient_balance"

    # Resource errors
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"

    # State errors
    INVALID_STATE = "invalid_state"

    # System errors
    INTERNAL_ERROR = "internal_error"


@dataclass
class ErrorResponse:
    """Standardized error response.

    All error responses include:
    - success: Always False
    - error: Human-readable message
    - code: Machine-readable error code
    - category: Error category (validation, permission, etc.)
    - retriable: Whether the operation should be retried
    - details: Optional additional context (entity key, attempted action)
    """

    success: bool = False
    error: str = ""
    code: str = ""
    category: str = ""
    retriable: bool = False
    details: dict[str, object] | None = None

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for serialization."""
        result: dict[str, object] = {
            "success": self.success,
            "error": self.error,
            "code": self.code,
            "category": self.category,
            "retriable": self.retriable,
        }
        if self.details:
            result["details"] = self.details
        return result


class RegistryError(Exception):
    """Base class for every failure raised by a registry operation."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    category: ErrorCategory = ErrorCategory.SYSTEM
    retriable: bool = False

    def __init__(self, message: str, **details: object) -> None:
        self.message = message
        self.details: dict[str, object] = dict(details)
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.message} ({context})"

    def to_response(self) -> dict[str, object]:
        """Render this error as a standardized error response dict."""
        return ErrorResponse(
            error=self.message,
            code=self.code.value,
            category=self.category.value,
            retriable=self.retriable,
            details=self.details or None,
        ).to_dict()


class NotFoundError(RegistryError):
    """The key has no record."""

    code = ErrorCode.NOT_FOUND
    category = ErrorCategory.RESOURCE


class AlreadyExistsError(RegistryError):
    """A create hit a key that already has a record."""

    code = ErrorCode.ALREADY_EXISTS
    category = ErrorCategory.RESOURCE


class InvalidStateError(RegistryError):
    """A status precondition does not hold (not approved, re-approval, not on sale)."""

    code = ErrorCode.INVALID_STATE
    category = ErrorCategory.STATE


class InsufficientBalanceError(RegistryError):
    """The buyer cannot cover the asset price."""

    code = ErrorCode.INSUFFICIENT_BALANCE
    category = ErrorCategory.PERMISSION


class UnauthorizedError(RegistryError):
    """Ownership or caller mismatch."""

    code = ErrorCode.NOT_AUTHORIZED
    category = ErrorCategory.PERMISSION


class InvalidArgumentError(RegistryError):
    """Malformed or unrecognized input (unknown top-up code, self-purchase, bad price)."""

    code = ErrorCode.INVALID_ARGUMENT
    category = ErrorCategory.VALIDATION


def system_error(message: str, **details: object) -> dict[str, object]:
    """Create a system error response for failures outside the registry taxonomy.

    Retriable, since the invocation was rolled back and nothing was written.
    """
    return ErrorResponse(
        error=message,
        code=ErrorCode.INTERNAL_ERROR.value,
        category=ErrorCategory.SYSTEM.value,
        retriable=True,
        details=dict(details) if details else None,
    ).to_dict()
