"""Domain layer: entities, query value types, events, errors and ports."""
from triview.domain.entities import Entity, EntityKind, RequirementStatus, build_entity
from triview.domain.query import FilterSpec, PageResult, QueryParams, QueryResponse, SortDirection, SortSpec

__all__ = [
    "Entity",
    "EntityKind",
    "RequirementStatus",
    "build_entity",
    "FilterSpec",
    "PageResult",
    "QueryParams",
    "QueryResponse",
    "SortDirection",
    "SortSpec",
]
