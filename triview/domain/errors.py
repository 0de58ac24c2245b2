"""Domain error hierarchy for clean exception handling."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class DomainError(Exception):
    """Base for all domain errors."""


class NotFoundError(DomainError):
    """Resource not found."""


class ValidationError(DomainError):
    """Invalid input or state."""


class ConflictError(DomainError):
    """Resource conflict (e.g., duplicate short name)."""


class ErrorCategory(str, Enum):
    """Classification of a failed query."""
    NETWORK = "network"
    VALIDATION = "validation"
    SERVER = "server"
    AUTH = "auth"


class TransportError(Exception):
    """Raised by a query service transport.

    ``status_code`` is None when no response was received at all.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class QueryError(DomainError):
    """A classified query failure, carrying the original status and cause."""

    category: ErrorCategory = ErrorCategory.SERVER

    def __init__(self, message: str, status_code: Optional[int] = None, original: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.original = original

    @property
    def retryable(self) -> bool:
        return self.category in (ErrorCategory.NETWORK, ErrorCategory.SERVER)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(category={self.category.value!r}, status_code={self.status_code!r}, message={self.message!r})"


class NetworkQueryError(QueryError):
    """No response was received from the query service."""

    category = ErrorCategory.NETWORK


class ValidationQueryError(QueryError):
    """Query parameters were rejected (4xx, e.g. unknown sort field)."""

    category = ErrorCategory.VALIDATION


class ServerQueryError(QueryError):
    """The backend failed (5xx)."""

    category = ErrorCategory.SERVER


class AuthQueryError(QueryError):
    """Unauthenticated or unauthorized (401/403)."""

    category = ErrorCategory.AUTH


class QueryCancelledError(DomainError):
    """A query completion was discarded because its caller abandoned it."""

    def __init__(self, epoch: int):
        super().__init__(f"Query {epoch} was cancelled; its result was discarded")
        self.epoch = epoch
