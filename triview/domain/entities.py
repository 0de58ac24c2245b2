"""Canonical domain entities: immutable snapshots tagged by kind."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field


class EntityKind(str, Enum):
    """Closed tag set of entity kinds."""
    DEFINITION = "RequirementDefinition"
    USAGE = "RequirementUsage"
    DEPENDENCY = "Dependency"


class RequirementStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    REJECTED = "rejected"


class DependencyType(str, Enum):
    DERIVE = "derive"
    SATISFY = "satisfy"
    REFINE = "refine"
    TRACE = "trace"


# Relation roles
OF = "of"
SOURCE = "source"
TARGET = "target"
SUBJECT = "subject"

RELATION_ROLES: Tuple[str, ...] = (OF, SOURCE, TARGET, SUBJECT)


class ElementAttributes(BaseModel):
    """Attributes shared by every kind."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    declared_name: Optional[str] = None
    declared_short_name: Optional[str] = None
    documentation: Optional[str] = None
    # Kept as a plain string so unknown server statuses never fail a merge
    status: Optional[str] = None
    tags: Tuple[str, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DefinitionAttributes(ElementAttributes):
    pass


class UsageAttributes(ElementAttributes):
    pass


class DependencyAttributes(ElementAttributes):
    dependency_type: Optional[str] = None


ATTRIBUTE_MODELS: Dict[EntityKind, Type[ElementAttributes]] = {
    EntityKind.DEFINITION: DefinitionAttributes,
    EntityKind.USAGE: UsageAttributes,
    EntityKind.DEPENDENCY: DependencyAttributes,
}


class Entity(BaseModel):
    """An immutable snapshot of one element.

    A later fetch of the same ``id`` replaces the snapshot wholesale.
    Equality is structural, which is what the store uses to decide
    whether a merge materially changed an entity.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Globally unique, immutable identifier")
    kind: EntityKind = Field(..., description="Kind tag")
    attributes: ElementAttributes = Field(default_factory=ElementAttributes, description="Typed attributes for the kind")
    relations: Dict[str, Optional[str]] = Field(default_factory=dict, description="Relation role to referenced id")
    extensions: Dict[str, Any] = Field(default_factory=dict, description="Attributes unknown for the kind")

    def relation(self, role: str) -> Optional[str]:
        return self.relations.get(role)

    def attribute(self, name: str, default: Any = None) -> Any:
        """Look up a typed attribute, falling back to extensions."""
        if name in type(self.attributes).model_fields:
            value = getattr(self.attributes, name)
            return default if value is None else value
        return self.extensions.get(name, default)

    @property
    def label(self) -> str:
        """Human-readable label: declared name, then short name, then id."""
        return self.attributes.declared_name or self.attributes.declared_short_name or self.id

    def with_attributes(self, **changes: Any) -> Entity:
        """Return a new snapshot with some attributes replaced."""
        return build_entity(
            self.id,
            self.kind,
            relations=dict(self.relations),
            **{**self.attributes.model_dump(exclude_none=True), **self.extensions, **changes},
        )


def build_entity(
    entity_id: str,
    kind: EntityKind | str,
    relations: Optional[Dict[str, Optional[str]]] = None,
    **attributes: Any,
) -> Entity:
    """Build an entity, splitting attributes known for the kind from extensions."""
    kind = EntityKind(kind)
    model = ATTRIBUTE_MODELS[kind]
    known = {k: v for k, v in attributes.items() if k in model.model_fields}
    extensions = {k: v for k, v in attributes.items() if k not in model.model_fields}
    if "tags" in known and known["tags"] is not None:
        known["tags"] = tuple(known["tags"])
    return Entity(
        id=entity_id,
        kind=kind,
        attributes=model(**known),
        relations=dict(relations or {}),
        extensions=extensions,
    )
