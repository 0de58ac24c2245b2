"""Backoff wrapper that retries a query service as the recovery policy decides."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from triview.application.error_recovery import ErrorRecoveryPolicy
from triview.domain.ports import QueryService
from triview.domain.query import QueryParams, QueryResponse

logger = logging.getLogger(__name__)


class RetryingQueryService:
    """Wraps a QueryService; surfaces a classified QueryError once the policy gives up."""

    def __init__(
        self,
        inner: QueryService,
        policy: Optional[ErrorRecoveryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._inner = inner
        self._policy = policy or ErrorRecoveryPolicy()
        self._sleep = sleep

    async def query(self, params: QueryParams) -> QueryResponse:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._inner.query(params)
            except Exception as exc:
                decision = self._policy.decide(exc, attempt)
                if not decision.should_retry:
                    if decision.error is exc:
                        raise
                    raise decision.error from exc
                logger.info(
                    f"Retrying query after {decision.error.category.value} failure "
                    f"(attempt {attempt}, waiting {decision.retry_after_ms}ms)"
                )
                await self._sleep(decision.retry_after_ms / 1000)
