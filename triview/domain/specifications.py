"""Specification pattern for reusable entity filters."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from triview.domain.entities import Entity, EntityKind
from triview.domain.query import QueryParams

# Wire (camelCase) field names accepted in filter and sort specs
FIELD_ALIASES: Dict[str, str] = {
    "eClass": "kind",
    "type": "kind",
    "elementId": "id",
    "declaredName": "declared_name",
    "name": "declared_name",
    "declaredShortName": "declared_short_name",
    "shortName": "declared_short_name",
    "reqId": "declared_short_name",
    "text": "documentation",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "dependencyType": "dependency_type",
}

SEARCH_FIELDS = ("declared_name", "declared_short_name", "documentation")

# Pseudo-field matching entities with any relation to the given id
REFERENCES_FIELD = "references"


def canonical_field(field: str) -> str:
    return FIELD_ALIASES.get(field, field)


def field_value(entity: Entity, field: str) -> Any:
    """Resolve a filter/sort field against an entity; None when absent."""
    name = canonical_field(field)
    if name == "id":
        return entity.id
    if name == "kind":
        return entity.kind.value
    if name in entity.relations:
        return entity.relations[name]
    return entity.attribute(name)


class Specification(ABC):
    """Abstract base for specifications (query filters)."""

    @abstractmethod
    def is_satisfied_by(self, candidate: Entity) -> bool:
        """Check if candidate satisfies this specification."""
        pass

    def and_(self, other: Specification) -> Specification:
        """Combine with AND logic."""
        return AndSpecification(self, other)

    def or_(self, other: Specification) -> Specification:
        """Combine with OR logic."""
        return OrSpecification(self, other)

    def not_(self) -> Specification:
        """Negate this specification."""
        return NotSpecification(self)


class AndSpecification(Specification):
    """AND composite specification."""

    def __init__(self, left: Specification, right: Specification):
        self.left = left
        self.right = right

    def is_satisfied_by(self, candidate: Entity) -> bool:
        return self.left.is_satisfied_by(candidate) and self.right.is_satisfied_by(candidate)


class OrSpecification(Specification):
    """OR composite specification."""

    def __init__(self, left: Specification, right: Specification):
        self.left = left
        self.right = right

    def is_satisfied_by(self, candidate: Entity) -> bool:
        return self.left.is_satisfied_by(candidate) or self.right.is_satisfied_by(candidate)


class NotSpecification(Specification):
    """NOT specification."""

    def __init__(self, spec: Specification):
        self.spec = spec

    def is_satisfied_by(self, candidate: Entity) -> bool:
        return not self.spec.is_satisfied_by(candidate)


class MatchAll(Specification):
    """Satisfied by every entity (empty filter)."""

    def is_satisfied_by(self, candidate: Entity) -> bool:
        return True


class FieldEquals(Specification):
    """Field value equals the given string (case-insensitive)."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value.lower()

    def is_satisfied_by(self, entity: Entity) -> bool:
        actual = field_value(entity, self.field)
        if actual is None:
            return False
        if isinstance(actual, (tuple, list)):
            return any(str(item).lower() == self.value for item in actual)
        return str(actual).lower() == self.value


class KindIs(Specification):
    """Entities of one kind."""

    def __init__(self, kind: EntityKind | str):
        self.kind = EntityKind(kind)

    def is_satisfied_by(self, entity: Entity) -> bool:
        return entity.kind == self.kind


class StatusIs(Specification):
    def __init__(self, status: str):
        self.status = status.lower()

    def is_satisfied_by(self, entity: Entity) -> bool:
        return (entity.attributes.status or "").lower() == self.status


class SearchTerm(Specification):
    """Case-insensitive contains over name, short name and free text."""

    def __init__(self, term: str):
        self.term = term.strip().lower()

    def is_satisfied_by(self, entity: Entity) -> bool:
        for name in SEARCH_FIELDS:
            value = entity.attribute(name)
            if value and self.term in str(value).lower():
                return True
        return False


class ReferencesEntity(Specification):
    """Entities with any relation pointing at ``target_id``."""

    def __init__(self, target_id: str):
        self.target_id = target_id

    def is_satisfied_by(self, entity: Entity) -> bool:
        return self.target_id in entity.relations.values()


def predicate_for(field: str, value: str) -> Specification:
    """Specification for one ``field = value`` filter predicate."""
    name = canonical_field(field)
    if name == "kind":
        kind = next((k for k in EntityKind if k.value.lower() == value.lower()), None)
        # An unknown kind matches nothing rather than failing the query
        return KindIs(kind) if kind is not None else FieldEquals(field, value)
    if name == "status":
        return StatusIs(value)
    if name == REFERENCES_FIELD:
        return ReferencesEntity(value)
    return FieldEquals(field, value)


def specification_for(params: QueryParams) -> Specification:
    """Build the conjunction of a query's filter predicates and search term."""
    spec: Optional[Specification] = None
    for predicate in params.filter:
        clause = predicate_for(predicate.field, predicate.value)
        spec = clause if spec is None else spec.and_(clause)
    if params.search and params.search.strip():
        clause = SearchTerm(params.search)
        spec = clause if spec is None else spec.and_(clause)
    return spec or MatchAll()


# Helper function to filter collections

def filter_by_specification(items: Iterable[Entity], spec: Specification) -> List[Entity]:
    """Filter a collection using a specification."""
    return [item for item in items if spec.is_satisfied_by(item)]
