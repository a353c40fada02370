"""
Error taxonomy for query operations.

Every failure surfaced by a listing or subscription operation is a
``QueryError`` carrying an ``ErrorKind`` and a human-readable message.
"""

from enum import Enum


class ErrorKind(Enum):
    """Kinds of query failures."""
    VALIDATION = "VALIDATION"                # filter failed entity-specific checks
    UNSUPPORTED_MODE = "UNSUPPORTED_MODE"    # data mode forbids indexed queries
    SERVICE_ERROR = "SERVICE_ERROR"          # transport or remote service failed
    INVALID_ARGUMENT = "INVALID_ARGUMENT"    # caller parameter violates a precondition


class QueryError(Exception):
    """
    Base class for all query failures.

    Attributes:
        kind: The failure category
        message: Human-readable description
    """

    kind: ErrorKind = ErrorKind.SERVICE_ERROR

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class ValidationError(QueryError):
    """Raised when a request filter fails validation. No request is issued."""
    kind = ErrorKind.VALIDATION


class UnsupportedModeError(QueryError):
    """Raised when the configured data mode forbids indexed queries."""
    kind = ErrorKind.UNSUPPORTED_MODE


class ServiceError(QueryError):
    """
    Raised when the remote query service call fails.

    The underlying transport error is chained as ``__cause__``.
    """
    kind = ErrorKind.SERVICE_ERROR


class InvalidArgumentError(QueryError):
    """Raised when a caller-supplied parameter violates a hard precondition."""
    kind = ErrorKind.INVALID_ARGUMENT
