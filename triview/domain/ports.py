"""Ports the application layer depends on; infrastructure provides adapters."""
from __future__ import annotations

from typing import Any, Dict, Protocol

from triview.domain.entities import Entity, EntityKind
from triview.domain.query import QueryParams, QueryResponse


class QueryService(Protocol):
    """Returns paginated entity batches or raises.

    Implementations raise ``TransportError`` (or a classified ``QueryError``)
    on failure; any other exception is treated as unclassified.
    """

    async def query(self, params: QueryParams) -> QueryResponse:
        ...


class MutationService(Protocol):
    """Server-side create/update/delete; returns authoritative snapshots."""

    async def create(self, kind: EntityKind, attributes: Dict[str, Any], relations: Dict[str, Any]) -> Entity:
        ...

    async def update(self, entity_id: str, attributes: Dict[str, Any]) -> Entity:
        ...

    async def delete(self, entity_id: str) -> None:
        ...
