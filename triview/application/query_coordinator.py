"""Orchestrates query service calls and merges their results into the store."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Tuple

from triview.application.error_recovery import ErrorRecoveryPolicy
from triview.application.store import MergeResult, NormalizedStore
from triview.domain.entities import Entity, EntityKind, RequirementStatus
from triview.domain.errors import ConflictError, NotFoundError, QueryCancelledError, ValidationError
from triview.domain.ports import MutationService, QueryService
from triview.domain.query import PageResult, QueryParams, QueryState
from triview.domain.specifications import REFERENCES_FIELD

logger = logging.getLogger(__name__)

KIND_FIELD = "eClass"
STATUS_FIELD = "status"


class CancellationToken:
    """Lets a caller abandon one pending load."""

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class QueryCoordinator:
    """Loads pages, tracks query state and patches the store.

    Completions are applied in completion order. Every call gets an epoch;
    a completion whose epoch was cancelled (``cancel_pending``) or whose
    token was cancelled is discarded without touching store or state.
    Retries are not performed here.
    """

    def __init__(
        self,
        store: NormalizedStore,
        query_service: QueryService,
        policy: Optional[ErrorRecoveryPolicy] = None,
        mutation_service: Optional[MutationService] = None,
    ) -> None:
        self._store = store
        self._service = query_service
        self._policy = policy or ErrorRecoveryPolicy()
        self._mutations = mutation_service
        self._state = QueryState()
        self._epoch = 0
        self._cancelled_through = 0

    # --------------- Read API ---------------
    @property
    def state(self) -> QueryState:
        return self._state.model_copy()

    @property
    def latest_epoch(self) -> int:
        """Epoch of the most recently issued load."""
        return self._epoch

    def is_latest(self, result: PageResult) -> bool:
        return result.epoch == self._epoch

    # --------------- Queries ---------------
    async def load_page(
        self,
        params: Optional[QueryParams] = None,
        token: Optional[CancellationToken] = None,
        **overrides: Any,
    ) -> PageResult:
        """Fetch one page and merge it; a failure leaves the store untouched."""
        params = self._with_overrides(params, overrides).normalized()
        self._epoch += 1
        epoch = self._epoch
        logger.debug(f"Query {epoch}: page={params.page} size={params.size} sort={len(params.sort)} filter={len(params.filter)} search={params.search!r}")

        try:
            response = await self._service.query(params)
        except QueryCancelledError:
            raise
        except Exception as exc:
            self._raise_classified(exc, f"Query {epoch}")

        if self._is_discarded(epoch, token):
            logger.debug(f"Discarding result of cancelled query {epoch}")
            raise QueryCancelledError(epoch)

        result = self._store.merge(response.content)
        self._state = QueryState(
            page=response.page,
            size=response.size,
            sort=params.sort,
            filter=params.filter,
            search=params.search,
            total_elements=response.total_elements,
            total_pages=response.total_pages,
        )
        return PageResult(
            ids=tuple(entity.id for entity in response.content),
            changed_ids=result.changed_ids,
            version=result.version,
            page=response.page,
            size=response.size,
            total_elements=response.total_elements,
            total_pages=response.total_pages,
            first=response.first,
            last=response.last,
            epoch=epoch,
        )

    async def load_by_type(self, kind: EntityKind | str, params: Optional[QueryParams] = None, **overrides: Any) -> PageResult:
        kind = EntityKind(kind)
        return await self.load_page(self._with_overrides(params, overrides).with_filter(KIND_FIELD, kind.value))

    async def search(self, term: str, params: Optional[QueryParams] = None, **overrides: Any) -> PageResult:
        return await self.load_page(self._with_overrides(params, overrides).with_search(term))

    async def load_approved(self, params: Optional[QueryParams] = None, **overrides: Any) -> PageResult:
        base = self._with_overrides(params, overrides)
        return await self.load_page(base.with_filter(STATUS_FIELD, RequirementStatus.APPROVED.value))

    async def load_related(self, entity_id: str, params: Optional[QueryParams] = None, **overrides: Any) -> PageResult:
        """Load the elements holding any relation to ``entity_id`` (usages, trace links)."""
        return await self.load_page(self._with_overrides(params, overrides).with_filter(REFERENCES_FIELD, entity_id))

    async def next_page(self) -> Optional[PageResult]:
        """Load the page after the last applied one, or None past the end."""
        state = self._state
        if state.total_pages is not None and state.page + 1 >= state.total_pages:
            return None
        return await self.load_page(QueryParams(
            page=state.page + 1,
            size=state.size,
            sort=state.sort,
            filter=state.filter,
            search=state.search,
        ))

    async def reload(self) -> PageResult:
        """Repeat the last applied query."""
        state = self._state
        return await self.load_page(QueryParams(
            page=state.page, size=state.size, sort=state.sort, filter=state.filter, search=state.search,
        ))

    def cancel_pending(self) -> int:
        """Discard the results of every load issued so far; returns the epoch."""
        self._cancelled_through = self._epoch
        return self._epoch

    # --------------- Mutations ---------------
    def apply_local(self, entities: Iterable[Entity]) -> MergeResult:
        """Merge snapshots obtained outside a page load."""
        return self._store.merge(entities)

    async def create_entity(
        self,
        kind: EntityKind | str,
        attributes: Optional[Dict[str, Any]] = None,
        relations: Optional[Dict[str, Any]] = None,
    ) -> Entity:
        service = self._require_mutations()
        try:
            entity = await service.create(EntityKind(kind), dict(attributes or {}), dict(relations or {}))
        except (NotFoundError, ValidationError, ConflictError):
            raise
        except Exception as exc:
            self._raise_classified(exc, "Create")
        self._store.merge([entity])
        return entity

    async def update_entity(self, entity_id: str, attributes: Dict[str, Any]) -> Entity:
        service = self._require_mutations()
        try:
            entity = await service.update(entity_id, dict(attributes))
        except (NotFoundError, ValidationError, ConflictError):
            raise
        except Exception as exc:
            self._raise_classified(exc, "Update")
        self._store.merge([entity])
        return entity

    async def delete_entities(self, ids: Iterable[str], cascade: bool = False) -> Tuple[str, ...]:
        """Delete on the server, then remove from the store (and selection).

        If a server delete fails, the ids already gone on the server are
        still removed from the store before the classified error is raised.
        """
        service = self._require_mutations()
        ids = list(dict.fromkeys(ids))
        targets = self._store.with_dependents(ids) if cascade else ids
        deleted = []
        try:
            for entity_id in targets:
                try:
                    await service.delete(entity_id)
                except NotFoundError:
                    logger.debug(f"Entity {entity_id} already gone on the server")
                except Exception as exc:
                    self._raise_classified(exc, f"Delete of {entity_id}")
                deleted.append(entity_id)
        finally:
            removed = self._store.remove(deleted)
        return removed

    # --------------- Internal helpers ---------------
    def _is_discarded(self, epoch: int, token: Optional[CancellationToken]) -> bool:
        return epoch <= self._cancelled_through or (token is not None and token.cancelled)

    def _with_overrides(self, params: Optional[QueryParams], overrides: Dict[str, Any]) -> QueryParams:
        params = params or QueryParams()
        if overrides:
            params = QueryParams.model_validate({**params.model_dump(), **overrides})
        return params

    def _require_mutations(self) -> MutationService:
        if self._mutations is None:
            raise ValidationError("No mutation service configured")
        return self._mutations

    def _raise_classified(self, exc: BaseException, operation: str) -> None:
        error = self._policy.classify(exc)
        logger.warning(f"{operation} failed ({error.category.value}): {error.message}")
        if error is exc:
            raise error
        raise error from exc
