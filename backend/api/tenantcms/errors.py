"""
Error taxonomy.

Every expected business rejection is a ``PlatformError`` subclass carrying its
``ErrorKind`` and HTTP status. Anything raised that is *not* a PlatformError is
an infrastructure failure and gets normalized to ``INTERNAL_ERROR`` at the
outermost boundary (see ``error_handlers``).
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Optional

from fastapi import status


class ErrorKind(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    AUTHORIZATION_ERROR = "AUTHORIZATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


HTTP_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.AUTHENTICATION_ERROR: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.AUTHORIZATION_ERROR: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class PlatformError(Exception):
    """Base class for expected, client-facing failures."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]


class ValidationError(PlatformError):
    kind = ErrorKind.VALIDATION_ERROR
    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        super().__init__(message)
        self.errors: Dict[str, List[str]] = dict(errors or {})

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls("Validation failed", {field: [message]})


class AuthenticationError(PlatformError):
    kind = ErrorKind.AUTHENTICATION_ERROR
    default_message = "Authentication required"


class AuthorizationError(PlatformError):
    kind = ErrorKind.AUTHORIZATION_ERROR
    default_message = "Insufficient permissions"

    @classmethod
    def for_roles(cls, roles: Iterable[str]) -> "AuthorizationError":
        return cls(f"Access denied. Required roles: {', '.join(sorted(roles))}")


class NotFoundError(PlatformError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str = "Resource") -> None:
        self.resource = resource
        super().__init__(f"{resource} not found")


class ConflictError(PlatformError):
    kind = ErrorKind.CONFLICT
    default_message = "Conflict with existing resource"


class RateLimitedError(PlatformError):
    kind = ErrorKind.RATE_LIMITED
    default_message = "Too many requests, please try again later."

    def __init__(self, message: Optional[str] = None, *, retry_after: int = 60, category: str = "general") -> None:
        super().__init__(message)
        self.retry_after = max(1, int(retry_after))
        self.category = category


class InternalError(PlatformError):
    kind = ErrorKind.INTERNAL_ERROR
    default_message = "Internal server error"
