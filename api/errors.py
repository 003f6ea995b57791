"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these exceptions; a single exception handler in ``api.main``
turns them into a status code and a response envelope.
"""

from enum import Enum
from typing import List, Optional

from fastapi import status


class ErrorKind(str, Enum):
    """Discriminant for service errors."""
    VALIDATION_FAILED = "validation_failed"
    DUPLICATE_KEY = "duplicate_key"
    NOT_FOUND = "not_found"
    INVALID_IDENTIFIER = "invalid_identifier"
    INTERNAL_ERROR = "internal_error"


STATUS_CODES = {
    ErrorKind.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.DUPLICATE_KEY: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_IDENTIFIER: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ServiceError(Exception):
    """Base class for errors raised by the query services."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]


class ValidationFailed(ServiceError):
    """One or more field constraints were violated."""

    kind = ErrorKind.VALIDATION_FAILED

    def __init__(self, errors: List[str]):
        super().__init__("Validation failed", errors)


class DuplicateKey(ServiceError):
    """A unique index rejected the write."""

    kind = ErrorKind.DUPLICATE_KEY


class NotFound(ServiceError):
    kind = ErrorKind.NOT_FOUND


class InvalidIdentifier(ServiceError):
    kind = ErrorKind.INVALID_IDENTIFIER


class InternalError(ServiceError):
    """Anything else, e.g. lost database connectivity."""

    kind = ErrorKind.INTERNAL_ERROR
