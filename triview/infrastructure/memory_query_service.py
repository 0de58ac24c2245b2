"""In-memory query and mutation service with server-side paging semantics."""
from __future__ import annotations

import asyncio
import json
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from triview.domain.entities import ATTRIBUTE_MODELS, Entity, EntityKind, build_entity
from triview.domain.errors import ConflictError, NotFoundError, TransportError, ValidationError
from triview.domain.query import QueryParams, QueryResponse
from triview.domain.specifications import REFERENCES_FIELD, canonical_field, filter_by_specification, specification_for
from triview.domain.strategies import OrderingStrategyFactory
from triview.infrastructure.record_mapper import records_to_entities

logger = logging.getLogger(__name__)

ID_PREFIXES = {
    EntityKind.DEFINITION: "R",
    EntityKind.USAGE: "U",
    EntityKind.DEPENDENCY: "D",
}


class InMemoryQueryService:
    """Holds entities server-side and answers paged queries.

    Unknown sort or filter fields are rejected with a 400 ``TransportError``,
    the way the backend rejects them. Failures can be queued with
    ``fail_next`` to exercise error handling.
    """

    def __init__(self, entities: Optional[Iterable[Entity]] = None, latency: float = 0.0) -> None:
        self._entities: Dict[str, Entity] = {}
        self._failures: List[BaseException] = []
        self.latency = latency
        self.calls: List[QueryParams] = []
        for entity in entities or []:
            self._entities[entity.id] = entity

    @classmethod
    def from_json_file(cls, path: Path | str) -> InMemoryQueryService:
        """Seed from a JSON list of wire element records; a missing file yields an empty service."""
        path = Path(path)
        if not path.exists():
            logger.info(f"No seed data at {path}; starting empty")
            return cls()
        with path.open("r", encoding="utf-8") as handle:
            records = json.load(handle)
        entities = records_to_entities(records)
        logger.info(f"Seeded query service with {len(entities)} elements from {path}")
        return cls(entities)

    # --------------- Test helpers ---------------
    def fail_next(self, exc: BaseException) -> None:
        """Queue an exception for the next call."""
        self._failures.append(exc)

    def put(self, *entities: Entity) -> None:
        for entity in entities:
            self._entities[entity.id] = entity

    def __len__(self) -> int:
        return len(self._entities)

    # --------------- QueryService ---------------
    async def query(self, params: QueryParams) -> QueryResponse:
        self.calls.append(params)
        await self._simulate_io()

        params = params.normalized()
        for spec in params.sort:
            self._require_known_field(spec.field, "sort")
        for predicate in params.filter:
            self._require_known_field(predicate.field, "filter")

        matches = filter_by_specification(self._entities.values(), specification_for(params))
        ordered = OrderingStrategyFactory.for_sort(params.sort).order(matches)

        total = len(ordered)
        total_pages = math.ceil(total / params.size) if total else 0
        start = params.page * params.size
        content = ordered[start:start + params.size]
        return QueryResponse(
            content=content,
            page=params.page,
            size=params.size,
            total_elements=total,
            total_pages=total_pages,
            first=params.page == 0,
            last=params.page >= total_pages - 1,
        )

    # --------------- MutationService ---------------
    async def create(self, kind: EntityKind, attributes: Dict[str, Any], relations: Dict[str, Any]) -> Entity:
        await self._simulate_io()
        kind = EntityKind(kind)
        if not (attributes.get("declared_name") or "").strip():
            raise ValidationError("declared_name is required")
        self._require_unique_short_name(attributes.get("declared_short_name"))
        entity_id = f"{ID_PREFIXES[kind]}-{uuid4().hex[:8]}"
        now = datetime.now()
        entity = build_entity(entity_id, kind, relations=relations, **{"created_at": now, "updated_at": now, **attributes})
        self._entities[entity_id] = entity
        return entity

    async def update(self, entity_id: str, attributes: Dict[str, Any]) -> Entity:
        await self._simulate_io()
        current = self._entities.get(entity_id)
        if current is None:
            raise NotFoundError(f"Element not found: {entity_id}")
        self._require_unique_short_name(attributes.get("declared_short_name"), exclude=entity_id)
        updated = current.with_attributes(**{**attributes, "updated_at": datetime.now()})
        self._entities[entity_id] = updated
        return updated

    async def delete(self, entity_id: str) -> None:
        await self._simulate_io()
        if self._entities.pop(entity_id, None) is None:
            raise NotFoundError(f"Element not found: {entity_id}")

    # --------------- Internal helpers ---------------
    async def _simulate_io(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        else:
            # Still yield to the loop so callers observe real suspension
            await asyncio.sleep(0)
        if self._failures:
            raise self._failures.pop(0)

    def _require_known_field(self, field: str, usage: str) -> None:
        name = canonical_field(field)
        known = {"id", "kind"} | {f for model in ATTRIBUTE_MODELS.values() for f in model.model_fields}
        if usage == "filter":
            known.add(REFERENCES_FIELD)
        if name not in known and not any(name in e.relations for e in self._entities.values()):
            raise TransportError(f"Unknown {usage} field: {field}", status_code=400)

    def _require_unique_short_name(self, short_name: Optional[str], exclude: Optional[str] = None) -> None:
        if short_name and any(
            e.attributes.declared_short_name == short_name and e.id != exclude for e in self._entities.values()
        ):
            raise ConflictError(f"Short name '{short_name}' already exists")
