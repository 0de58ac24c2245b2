"""Tests for the retrying query service wrapper."""
from __future__ import annotations

import pytest
from unittest.mock import AsyncMock

from triview.application.error_recovery import ErrorRecoveryPolicy
from triview.application.query_coordinator import QueryCoordinator
from triview.domain.errors import AuthQueryError, NetworkQueryError, ServerQueryError, TransportError
from triview.domain.query import QueryParams
from triview.infrastructure.retrying_query_service import RetryingQueryService


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_service(backend, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    def factory(max_retries=3):
        policy = ErrorRecoveryPolicy(max_retries=max_retries, base_delay_ms=100, backoff_factor=2.0, max_delay_ms=1000)
        return RetryingQueryService(backend, policy, sleep=fake_sleep)

    return factory


class TestRetryingQueryService:
    """Test retry loop driven by the recovery policy."""

    async def test_recovers_from_transient_failures(self, backend, make_service, sleeps):
        backend.fail_next(TransportError("down"))
        backend.fail_next(TransportError("boom", status_code=503))

        response = await make_service().query(QueryParams())

        assert response.total_elements == 5
        assert sleeps == [0.1, 0.2]
        assert len(backend.calls) == 3

    async def test_surfaces_after_budget(self, backend, make_service, sleeps):
        for _ in range(3):
            backend.fail_next(TransportError("boom", status_code=500))

        with pytest.raises(ServerQueryError) as exc_info:
            await make_service(max_retries=2).query(QueryParams())

        assert exc_info.value.status_code == 500
        assert len(sleeps) == 2

    async def test_auth_is_not_retried(self, backend, make_service, sleeps):
        backend.fail_next(TransportError("expired", status_code=401))

        with pytest.raises(AuthQueryError):
            await make_service().query(QueryParams())

        assert sleeps == []
        assert len(backend.calls) == 1

    async def test_already_classified_error_is_reraised(self, sleeps):
        error = NetworkQueryError("offline")
        inner = AsyncMock()
        inner.query.side_effect = error

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        service = RetryingQueryService(inner, ErrorRecoveryPolicy(max_retries=1), sleep=fake_sleep)

        with pytest.raises(NetworkQueryError) as exc_info:
            await service.query(QueryParams())

        assert exc_info.value is error
        assert inner.query.await_count == 2

    async def test_coordinator_over_retrying_service(self, store, backend, make_service):
        backend.fail_next(ConnectionError("reset"))
        coordinator = QueryCoordinator(store, make_service())

        result = await coordinator.load_page()

        assert len(store) == 5
        assert result.epoch == 1
