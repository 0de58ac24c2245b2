"""Classifies query failures and decides whether to retry or surface them."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from triview.config import settings
from triview.domain.errors import (
    AuthQueryError,
    NetworkQueryError,
    QueryError,
    ServerQueryError,
    TransportError,
    ValidationQueryError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecoveryDecision:
    """Either retry after ``retry_after_ms`` or surface ``error``."""
    error: QueryError
    retry_after_ms: Optional[int] = None

    @property
    def should_retry(self) -> bool:
        return self.retry_after_ms is not None

    @classmethod
    def retry_after(cls, error: QueryError, delay_ms: int) -> RecoveryDecision:
        return cls(error=error, retry_after_ms=delay_ms)

    @classmethod
    def surface(cls, error: QueryError) -> RecoveryDecision:
        return cls(error=error)


class ErrorRecoveryPolicy:
    """Pure decision logic; never touches store or selection state."""

    def __init__(
        self,
        max_retries: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
        backoff_factor: Optional[float] = None,
        max_delay_ms: Optional[int] = None,
    ) -> None:
        self.max_retries = settings.RETRY_MAX_ATTEMPTS if max_retries is None else max_retries
        self.base_delay_ms = settings.RETRY_BASE_DELAY_MS if base_delay_ms is None else base_delay_ms
        self.backoff_factor = settings.RETRY_BACKOFF_FACTOR if backoff_factor is None else backoff_factor
        self.max_delay_ms = settings.RETRY_MAX_DELAY_MS if max_delay_ms is None else max_delay_ms

    def classify(self, exc: BaseException) -> QueryError:
        """Map any failure to a classified QueryError."""
        if isinstance(exc, QueryError):
            return exc
        if isinstance(exc, TransportError):
            return self._classify_status(exc.message, exc.status_code, exc)
        if isinstance(exc, (ConnectionError, TimeoutError, asyncio.TimeoutError, OSError)):
            return NetworkQueryError(f"Network error: unable to reach query service ({exc})", None, exc)
        return ServerQueryError(f"Unexpected query failure: {exc}", None, exc)

    def decide(self, exc: BaseException, attempt: int) -> RecoveryDecision:
        """Decide what to do after the ``attempt``-th failed try (1-based)."""
        error = self.classify(exc)
        if not error.retryable or attempt > self.max_retries:
            return RecoveryDecision.surface(error)
        return RecoveryDecision.retry_after(error, self.backoff_ms(attempt))

    def backoff_ms(self, attempt: int) -> int:
        delay = self.base_delay_ms * (self.backoff_factor ** max(attempt - 1, 0))
        return int(min(delay, self.max_delay_ms))

    def _classify_status(self, message: str, status_code: Optional[int], exc: BaseException) -> QueryError:
        if not status_code:
            return NetworkQueryError(message or "Network error: no response received", None, exc)
        if status_code in (401, 403):
            return AuthQueryError(message or "Not authorized", status_code, exc)
        if 400 <= status_code < 500:
            return ValidationQueryError(message or "Invalid query parameters", status_code, exc)
        return ServerQueryError(message or "Server error", status_code, exc)
