"""Tests for the query coordinator."""
from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError as ParamsValidationError
from unittest.mock import AsyncMock

from triview.application.query_coordinator import CancellationToken, QueryCoordinator
from triview.domain.entities import EntityKind
from triview.domain.errors import (
    ConflictError,
    AuthQueryError,
    NetworkQueryError,
    NotFoundError,
    QueryCancelledError,
    ServerQueryError,
    TransportError,
    ValidationError,
    ValidationQueryError,
)
from triview.domain.query import FilterSpec, QueryParams, QueryResponse, SortSpec
from triview.infrastructure.memory_query_service import InMemoryQueryService
from conftest import definition, usage


def fail_on_call(backend, failing_call):
    """Make the n-th server delete fail with a 503 while earlier ones succeed."""
    real_delete = backend.delete
    calls = []

    async def delete(entity_id):
        calls.append(entity_id)
        if len(calls) == failing_call:
            raise TransportError("Service unavailable", status_code=503)
        await real_delete(entity_id)

    backend.delete = delete


class TestLoadPage:
    """Test paging, merge and state updates."""

    async def test_defaults_page_and_size(self, coordinator, backend):
        result = await coordinator.load_page()

        sent = backend.calls[-1].normalized()
        assert (sent.page, sent.size) == (0, 50)
        assert result.total_elements == 5
        assert result.first and result.last
        assert result.ids == ("R-1", "R-2", "U-1", "U-2", "D-1")

    async def test_blank_search_is_dropped(self, coordinator, backend):
        await coordinator.load_page(search="   ")

        assert backend.calls[-1].search is None
        assert coordinator.state.search is None

    async def test_merges_into_store(self, coordinator, store):
        result = await coordinator.load_page(size=2)

        assert store.ids() == ("R-1", "R-2")
        assert result.changed_ids == ("R-1", "R-2")
        assert result.version == store.version == 2

    async def test_pages_merge_cumulatively(self, coordinator, store):
        await coordinator.load_page(page=0, size=2)
        await coordinator.load_page(page=1, size=2)

        assert len(store) == 4
        assert coordinator.state.page == 1

    async def test_server_totals_returned_verbatim(self, store):
        response = QueryResponse(content=[definition("R-1")], page=3, size=1, total_elements=99, total_pages=99, first=False, last=False)
        service = AsyncMock()
        service.query.return_value = response
        coordinator = QueryCoordinator(store, service)

        result = await coordinator.load_page(page=3, size=1)

        assert (result.total_elements, result.total_pages, result.first, result.last) == (99, 99, False, False)
        assert coordinator.state.total_pages == 99

    async def test_state_tracks_query(self, coordinator):
        sort = (SortSpec(field="declaredName", direction="desc"),)
        await coordinator.load_page(QueryParams(size=3, sort=sort, filter=(FilterSpec(field="status", value="draft"),)))

        state = coordinator.state
        assert state.size == 3
        assert state.sort == sort
        assert state.filter[0].value == "draft"
        assert state.total_elements == 2

    async def test_next_page_until_end(self, coordinator, store):
        await coordinator.load_page(size=2)

        assert (await coordinator.next_page()).page == 1
        assert (await coordinator.next_page()).page == 2
        assert await coordinator.next_page() is None
        assert len(store) == 5

    async def test_reload_repeats_last_query(self, coordinator, backend):
        await coordinator.load_page(page=1, size=2)

        await coordinator.reload()

        assert (backend.calls[-1].page, backend.calls[-1].size) == (1, 2)

    async def test_invalid_override_is_rejected(self, coordinator):
        with pytest.raises(ParamsValidationError):
            await coordinator.load_page(page=-1)


class TestShortcuts:
    """Test by-type, search and approved shortcuts."""

    async def test_load_by_type_injects_kind_filter(self, coordinator, store):
        result = await coordinator.load_by_type(EntityKind.USAGE)

        assert result.ids == ("U-1", "U-2")
        assert {f.field: f.value for f in coordinator.state.filter} == {"eClass": "RequirementUsage"}

    async def test_shortcut_keeps_caller_paging_and_sort(self, coordinator, backend):
        params = QueryParams(page=0, size=1, sort=(SortSpec(field="declaredName", direction="desc"),))

        result = await coordinator.load_by_type("RequirementDefinition", params)

        sent = backend.calls[-1]
        assert sent.size == 1
        assert sent.sort == params.sort
        assert result.ids == ("R-1",)
        assert result.total_elements == 2

    async def test_shortcut_keeps_other_caller_filters(self, coordinator):
        params = QueryParams(filter=(FilterSpec(field="status", value="approved"),))

        result = await coordinator.load_by_type(EntityKind.DEFINITION, params)

        assert result.ids == ("R-1",)
        assert len(coordinator.state.filter) == 2

    async def test_shortcut_replaces_same_field(self, coordinator):
        params = QueryParams(filter=(FilterSpec(field="status", value="draft"),))

        result = await coordinator.load_approved(params)

        assert result.ids == ("R-1", "U-1")
        assert coordinator.state.filter == (FilterSpec(field="status", value="approved"),)

    async def test_search_matches_name_and_short_name(self, coordinator):
        by_name = await coordinator.search("range")
        by_short_name = await coordinator.search("req-001")

        assert by_name.ids == ("R-2", "U-2", "D-1")
        assert by_short_name.ids == ("R-1",)
        assert coordinator.state.search == "req-001"

    async def test_load_related_finds_usages_and_trace_links(self, coordinator):
        result = await coordinator.load_related("R-2")

        assert result.ids == ("U-2", "D-1")
        assert coordinator.state.filter == (FilterSpec(field="references", value="R-2"),)

    async def test_load_related_narrows_by_kind(self, coordinator):
        params = QueryParams(filter=(FilterSpec(field="eClass", value="Dependency"),))

        result = await coordinator.load_related("R-2", params)

        assert result.ids == ("D-1",)


class TestFailures:
    """Test classification and that failures never touch the store."""

    @pytest.mark.parametrize("failure, expected", [
        (TransportError("down"), NetworkQueryError),
        (ConnectionError("refused"), NetworkQueryError),
        (TransportError("bad sort", status_code=400), ValidationQueryError),
        (TransportError("denied", status_code=403), AuthQueryError),
        (TransportError("boom", status_code=503), ServerQueryError),
        (RuntimeError("unexpected"), ServerQueryError),
    ])
    async def test_failed_load_leaves_store_untouched(self, coordinator, backend, store, failure, expected):
        store.merge([definition("R-1", "Local copy"), usage("U-9", of="R-1")])
        before = {entity.id: entity for entity in store}
        version = store.version
        state = coordinator.state
        backend.fail_next(failure)

        with pytest.raises(expected) as exc_info:
            await coordinator.load_page()

        assert {entity.id: entity for entity in store} == before
        assert store.version == version
        assert coordinator.state == state
        assert exc_info.value.original is failure

    async def test_error_keeps_original_status(self, coordinator, backend):
        backend.fail_next(TransportError("Unknown sort field", status_code=400))

        with pytest.raises(ValidationQueryError) as exc_info:
            await coordinator.load_page()

        assert exc_info.value.status_code == 400
        assert "Unknown sort field" in exc_info.value.message

    async def test_unknown_sort_field_is_validation_error(self, coordinator, store):
        with pytest.raises(ValidationQueryError):
            await coordinator.load_page(sort=[{"field": "colour"}])

        assert len(store) == 0

    async def test_no_retries_in_coordinator(self, store):
        service = AsyncMock()
        service.query.side_effect = TransportError("boom", status_code=500)
        coordinator = QueryCoordinator(store, service)

        with pytest.raises(ServerQueryError):
            await coordinator.load_page()

        assert service.query.await_count == 1


class TestCancellation:
    """Test epoch and token based discarding."""

    async def test_cancel_pending_discards_result(self, store, sample_entities):
        backend = InMemoryQueryService(sample_entities, latency=0.01)
        coordinator = QueryCoordinator(store, backend)

        task = asyncio.create_task(coordinator.load_page())
        await asyncio.sleep(0)
        coordinator.cancel_pending()

        with pytest.raises(QueryCancelledError):
            await task
        assert len(store) == 0
        assert coordinator.state.total_elements is None

    async def test_cancelled_token_discards_result(self, coordinator, store):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(QueryCancelledError):
            await coordinator.load_page(token=token)

        assert len(store) == 0

    async def test_later_loads_are_not_cancelled(self, coordinator, store):
        coordinator.cancel_pending()

        result = await coordinator.load_page()

        assert coordinator.is_latest(result)
        assert len(store) == 5

    async def test_completions_applied_in_completion_order(self, store):
        slow = asyncio.Event()

        async def query(params):
            if params.page == 0:
                await slow.wait()
                return QueryResponse(content=[definition("R-1", "stale")], page=0, size=1, total_elements=1, total_pages=1)
            return QueryResponse(content=[definition("R-1", "fresh")], page=1, size=1, total_elements=1, total_pages=1)

        service = AsyncMock()
        service.query.side_effect = query
        coordinator = QueryCoordinator(store, service)

        first = asyncio.create_task(coordinator.load_page(page=0))
        await asyncio.sleep(0)
        second = await coordinator.load_page(page=1)
        slow.set()
        first_result = await first

        assert coordinator.is_latest(second)
        assert not coordinator.is_latest(first_result)
        assert store.get("R-1").label == "stale"

    async def test_task_cancellation_leaves_store_untouched(self, store, sample_entities):
        coordinator = QueryCoordinator(store, InMemoryQueryService(sample_entities, latency=0.05))

        task = asyncio.create_task(coordinator.load_page())
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(store) == 0


class TestMutations:
    """Test create, update and delete flowing through the store."""

    async def test_create_merges_into_store(self, coordinator, store):
        entity = await coordinator.create_entity(
            EntityKind.USAGE,
            {"declared_name": "New usage", "declared_short_name": "REQ-009"},
            {"of": "R-1"},
        )

        assert entity.id.startswith("U-")
        assert store.get(entity.id) == entity

    async def test_create_without_name_is_validation_error(self, coordinator, store):
        with pytest.raises(ValidationError):
            await coordinator.create_entity(EntityKind.DEFINITION, {"declared_name": " "})

        assert len(store) == 0

    async def test_create_duplicate_short_name_is_conflict(self, coordinator, store):
        with pytest.raises(ConflictError, match="REQ-001"):
            await coordinator.create_entity(EntityKind.DEFINITION, {"declared_name": "Dup", "declared_short_name": "REQ-001"})

        assert len(store) == 0

    async def test_update_to_taken_short_name_is_conflict(self, coordinator, store):
        await coordinator.load_page()

        with pytest.raises(ConflictError):
            await coordinator.update_entity("R-2", {"declared_short_name": "REQ-001"})

        assert store.get("R-2").attributes.declared_short_name == "REQ-002"

    async def test_update_keeping_own_short_name_is_allowed(self, coordinator):
        entity = await coordinator.update_entity("R-1", {"declared_short_name": "REQ-001", "status": "draft"})

        assert entity.attributes.status == "draft"

    async def test_update_replaces_snapshot(self, coordinator, store):
        await coordinator.load_page()

        entity = await coordinator.update_entity("R-1", {"status": "rejected"})

        assert store.get("R-1") == entity
        assert store.get("R-1").attributes.status == "rejected"

    async def test_update_unknown_raises_not_found(self, coordinator):
        with pytest.raises(NotFoundError):
            await coordinator.update_entity("R-404", {"status": "approved"})

    async def test_delete_prunes_store_and_selection(self, coordinator, store, selection, backend):
        await coordinator.load_page()
        selection.select("U-1")

        removed = await coordinator.delete_entities(["U-1"])

        assert removed == ("U-1",)
        assert "U-1" not in store
        assert selection.current() == frozenset()
        assert len(backend) == 4

    async def test_delete_cascade_removes_usages(self, coordinator, store, backend):
        await coordinator.load_page()

        removed = await coordinator.delete_entities(["R-2"], cascade=True)

        assert set(removed) == {"R-2", "U-2"}
        assert "D-1" in store
        assert len(backend) == 3

    async def test_partial_delete_failure_removes_deleted_ids(self, coordinator, store, selection, backend):
        await coordinator.load_page()
        selection.select_many(["R-1", "R-2"])
        fail_on_call(backend, 2)

        with pytest.raises(ServerQueryError):
            await coordinator.delete_entities(["R-1", "R-2"])

        assert "R-1" not in store
        assert not selection.is_selected("R-1")
        assert "R-2" in store
        assert selection.is_selected("R-2")
        assert len(backend) == 4

    async def test_partial_cascade_failure_keeps_store_in_step_with_server(self, coordinator, store, backend):
        await coordinator.load_page()
        fail_on_call(backend, 2)

        with pytest.raises(ServerQueryError):
            await coordinator.delete_entities(["R-1"], cascade=True)

        assert "R-1" not in store
        assert store.get("U-1").relation("of") == "R-1"
        remaining = await backend.query(QueryParams())
        assert {e.id for e in remaining.content} == set(store.ids())

    async def test_delete_of_server_missing_entity_still_removes_locally(self, coordinator, store, backend):
        await coordinator.load_page()
        await backend.delete("R-1")

        removed = await coordinator.delete_entities(["R-1"])

        assert removed == ("R-1",)

    async def test_apply_local_merges(self, coordinator, store):
        result = coordinator.apply_local([definition("R-7")])

        assert result.changed_ids == ("R-7",)
        assert "R-7" in store

    async def test_mutations_require_service(self, store, backend):
        coordinator = QueryCoordinator(store, backend)

        with pytest.raises(ValidationError):
            await coordinator.delete_entities(["R-1"])
