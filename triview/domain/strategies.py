"""Strategy pattern for ordering entities (tree children, query results)."""
from __future__ import annotations

from typing import Any, List, Protocol, Sequence, Tuple

from triview.domain.entities import Entity
from triview.domain.query import SortDirection, SortSpec
from triview.domain.specifications import canonical_field, field_value


class OrderingStrategy(Protocol):
    """Protocol for ordering strategies."""

    def order(self, entities: Sequence[Entity]) -> List[Entity]:
        """Return the entities in display order."""
        ...

    def get_name(self) -> str:
        ...


def _sort_key(value: Any) -> Tuple[int, Any]:
    # Numbers before strings; anything else compares by its string form
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, str):
        return (1, value.lower())
    return (2, str(value))


class InsertionOrderStrategy:
    """Keeps the order in which entities were first merged (default)."""

    def order(self, entities: Sequence[Entity]) -> List[Entity]:
        return list(entities)

    def get_name(self) -> str:
        return "insertion"


class FieldOrderStrategy:
    """Orders by one field; ties keep insertion order."""

    def __init__(self, field: str, direction: SortDirection = SortDirection.ASC):
        self.field = canonical_field(field)
        self.direction = SortDirection(direction)

    def order(self, entities: Sequence[Entity]) -> List[Entity]:
        present = [e for e in entities if field_value(e, self.field) is not None]
        absent = [e for e in entities if field_value(e, self.field) is None]
        present.sort(
            key=lambda e: _sort_key(field_value(e, self.field)),
            reverse=self.direction == SortDirection.DESC,
        )
        return present + absent

    def get_name(self) -> str:
        return f"{self.field},{self.direction.value}"


class CompositeOrderStrategy:
    """Applies an ordered sort spec; the first spec is the primary key."""

    def __init__(self, specs: Sequence[SortSpec]):
        self.specs = tuple(specs)

    def order(self, entities: Sequence[Entity]) -> List[Entity]:
        ordered = list(entities)
        # Stable sorts applied from the least significant key
        for spec in reversed(self.specs):
            ordered = FieldOrderStrategy(spec.field, spec.direction).order(ordered)
        return ordered

    def get_name(self) -> str:
        return ";".join(f"{canonical_field(s.field)},{s.direction.value}" for s in self.specs) or "insertion"


class OrderingStrategyFactory:
    """Factory to select an ordering strategy by name."""

    _named_fields = {
        "name": "declared_name",
        "short_name": "declared_short_name",
        "status": "status",
        "created": "created_at",
        "updated": "updated_at",
    }

    @classmethod
    def get_strategy(cls, name: str | None, direction: SortDirection = SortDirection.ASC) -> OrderingStrategy:
        """Get an ordering strategy by short name (``name``, ``status``, ...) or attribute name.

        An empty name or ``insertion`` keeps insertion order.
        """
        if not name or name.lower() == "insertion":
            return InsertionOrderStrategy()
        field = cls._named_fields.get(name.lower(), name)
        return FieldOrderStrategy(field, direction)

    @classmethod
    def for_sort(cls, specs: Sequence[SortSpec]) -> OrderingStrategy:
        if not specs:
            return InsertionOrderStrategy()
        return CompositeOrderStrategy(specs)
