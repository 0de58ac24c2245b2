"""Maps wire element records ``{elementId, eClass, properties}`` to entities."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List

from triview.domain.entities import OF, SOURCE, SUBJECT, TARGET, Entity, EntityKind, build_entity
from triview.domain.errors import ValidationError
from triview.domain.query import QueryResponse

# Wire property name -> attribute name
ATTRIBUTE_NAMES: Dict[str, str] = {
    "declaredName": "declared_name",
    "name": "declared_name",
    "declaredShortName": "declared_short_name",
    "reqId": "declared_short_name",
    "documentation": "documentation",
    "text": "documentation",
    "status": "status",
    "tags": "tags",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "dependencyType": "dependency_type",
}

# Wire property name -> relation role
RELATION_NAMES: Dict[str, str] = {
    "of": OF,
    "requirementDefinition": OF,
    "source": SOURCE,
    "fromId": SOURCE,
    "target": TARGET,
    "toId": TARGET,
    "subject": SUBJECT,
}

ENTITY_KINDS: Dict[str, EntityKind] = {kind.value: kind for kind in EntityKind}
# Trace relation classes the server reports under their own eClass
ENTITY_KINDS.update({
    "Satisfy": EntityKind.DEPENDENCY,
    "DeriveRequirement": EntityKind.DEPENDENCY,
    "Refine": EntityKind.DEPENDENCY,
    "Trace": EntityKind.DEPENDENCY,
})
DEPENDENCY_TYPES = {
    "Satisfy": "satisfy",
    "DeriveRequirement": "derive",
    "Refine": "refine",
    "Trace": "trace",
}


def _documentation(value: Any) -> Any:
    # Documentation may arrive as a list of comment objects with a body
    if isinstance(value, list):
        bodies = [item.get("body", "") if isinstance(item, dict) else str(item) for item in value]
        return "\n".join(b for b in bodies if b) or None
    return value


def _reference(value: Any) -> Any:
    # References may arrive as an id or as an embedded {"id": ...} object
    if isinstance(value, dict):
        return value.get("id") or value.get("elementId")
    return value


def record_to_entity(record: Dict[str, Any]) -> Entity:
    """Translate one wire record; rejects records without id or with unknown eClass."""
    entity_id = record.get("elementId") or record.get("id")
    if not entity_id:
        raise ValidationError("Element record has no id")
    e_class = record.get("eClass", "")
    kind = ENTITY_KINDS.get(e_class)
    if kind is None:
        raise ValidationError(f"Unsupported element class: {e_class!r}")

    properties = dict(record.get("properties") or record.get("attributes") or {})
    attributes: Dict[str, Any] = {}
    relations: Dict[str, Any] = {}
    for key, value in properties.items():
        if key in RELATION_NAMES:
            relations[RELATION_NAMES[key]] = _reference(value)
        elif key in ATTRIBUTE_NAMES:
            name = ATTRIBUTE_NAMES[key]
            attributes[name] = _documentation(value) if name == "documentation" else value
        elif key not in ("elementId", "eClass", "id"):
            attributes[key] = value

    if e_class in DEPENDENCY_TYPES:
        attributes.setdefault("dependency_type", DEPENDENCY_TYPES[e_class])
    return build_entity(entity_id, kind, relations=relations, **attributes)


def entity_to_record(entity: Entity) -> Dict[str, Any]:
    """Inverse mapping, used by the in-memory service and the HTTP surface."""
    wire_names = {v: k for k, v in ATTRIBUTE_NAMES.items() if k not in ("name", "reqId", "text")}
    properties: Dict[str, Any] = {}
    for name, value in entity.attributes.model_dump(exclude_none=True).items():
        if name == "tags" and not value:
            continue
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        properties[wire_names.get(name, name)] = list(value) if isinstance(value, tuple) else value
    for role, target in entity.relations.items():
        properties[role] = target
    properties.update(entity.extensions)
    return {"elementId": entity.id, "eClass": entity.kind.value, "properties": properties}


def records_to_entities(records: Iterable[Dict[str, Any]]) -> List[Entity]:
    return [record_to_entity(record) for record in records]


def page_to_response(payload: Dict[str, Any]) -> QueryResponse:
    """Translate a paged wire payload into a QueryResponse."""
    content = records_to_entities(payload.get("content") or [])
    return QueryResponse(
        content=content,
        page=payload.get("page", 0),
        size=payload.get("size", len(content)),
        total_elements=payload.get("totalElements", len(content)),
        total_pages=payload.get("totalPages", 1),
        first=payload.get("first", True),
        last=payload.get("last", True),
    )
