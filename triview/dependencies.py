from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from fastapi import Depends, Request

from triview.application.error_recovery import ErrorRecoveryPolicy
from triview.application.event_handlers import register_event_handlers
from triview.application.projection_engine import ProjectionEngine
from triview.application.query_coordinator import QueryCoordinator
from triview.application.selection_coordinator import SelectionCoordinator
from triview.application.store import NormalizedStore
from triview.config import settings
from triview.domain.ports import MutationService, QueryService
from triview.domain.query import SortDirection
from triview.domain.strategies import OrderingStrategy, OrderingStrategyFactory
from triview.infrastructure.memory_query_service import InMemoryQueryService
from triview.infrastructure.retrying_query_service import RetryingQueryService


@dataclass
class ViewSession:
    """One store with its coordinators and projections, wired together."""
    store: NormalizedStore
    selection: SelectionCoordinator
    engine: ProjectionEngine
    coordinator: QueryCoordinator
    _detach: List[Callable[[], None]] = field(default_factory=list)

    def close(self) -> None:
        for detach in self._detach:
            detach()
        self.engine.close()
        self.selection.close()


def build_session(
    query_service: QueryService,
    mutation_service: Optional[MutationService] = None,
    name: str = "default",
    policy: Optional[ErrorRecoveryPolicy] = None,
    ordering: Optional[OrderingStrategy] = None,
    audit: bool = True,
) -> ViewSession:
    store = NormalizedStore(name)
    selection = SelectionCoordinator(store)
    engine = ProjectionEngine(store, selection, ordering=ordering)
    coordinator = QueryCoordinator(store, query_service, policy=policy, mutation_service=mutation_service)
    detach = register_event_handlers(store, selection) if audit else []
    return ViewSession(store, selection, engine, coordinator, detach)


def build_default_session() -> ViewSession:
    backend = InMemoryQueryService.from_json_file(settings.SEED_DATA_PATH)
    policy = ErrorRecoveryPolicy()
    return build_session(
        query_service=RetryingQueryService(backend, policy),
        mutation_service=backend,
        policy=policy,
        ordering=OrderingStrategyFactory.get_strategy(settings.TREE_ORDERING, SortDirection(settings.TREE_ORDERING_DIRECTION)),
    )


def get_session(request: Request) -> ViewSession:
    return request.app.state.session


def get_store(session: ViewSession = Depends(get_session)) -> NormalizedStore:
    return session.store


def get_selection(session: ViewSession = Depends(get_session)) -> SelectionCoordinator:
    return session.selection


def get_projection_engine(session: ViewSession = Depends(get_session)) -> ProjectionEngine:
    return session.engine


def get_query_coordinator(session: ViewSession = Depends(get_session)) -> QueryCoordinator:
    return session.coordinator
