"""Tests for wire record mapping."""
from __future__ import annotations

import pytest

from triview.domain.entities import EntityKind
from triview.domain.errors import ValidationError
from triview.infrastructure.record_mapper import entity_to_record, page_to_response, record_to_entity


class TestRecordToEntity:
    """Test translation of {elementId, eClass, properties} records."""

    def test_definition_record(self):
        entity = record_to_entity({
            "elementId": "R-1",
            "eClass": "RequirementDefinition",
            "properties": {
                "declaredName": "Braking distance",
                "declaredShortName": "REQ-001",
                "status": "approved",
                "tags": ["safety", "brakes"],
                "createdAt": "2024-01-01T12:00:00",
            },
        })

        assert entity.kind == EntityKind.DEFINITION
        assert entity.attributes.declared_name == "Braking distance"
        assert entity.attributes.declared_short_name == "REQ-001"
        assert entity.attributes.tags == ("safety", "brakes")
        assert entity.attributes.created_at.year == 2024

    def test_usage_with_embedded_reference(self):
        entity = record_to_entity({
            "elementId": "U-1",
            "eClass": "RequirementUsage",
            "properties": {"name": "Front axle", "requirementDefinition": {"id": "R-1"}},
        })

        assert entity.relation("of") == "R-1"
        assert entity.label == "Front axle"

    def test_trace_class_maps_to_dependency(self):
        entity = record_to_entity({
            "elementId": "D-1",
            "eClass": "Satisfy",
            "properties": {"fromId": "U-1", "toId": "R-1"},
        })

        assert entity.kind == EntityKind.DEPENDENCY
        assert entity.attributes.dependency_type == "satisfy"
        assert entity.relations == {"source": "U-1", "target": "R-1"}

    def test_unknown_properties_kept_as_extensions(self):
        entity = record_to_entity({
            "elementId": "R-1",
            "eClass": "RequirementDefinition",
            "properties": {"priority": "high", "dependencyType": "derive"},
        })

        assert entity.extensions == {"priority": "high", "dependency_type": "derive"}
        assert entity.attribute("priority") == "high"

    def test_documentation_comment_list_is_joined(self):
        entity = record_to_entity({
            "elementId": "R-1",
            "eClass": "RequirementDefinition",
            "properties": {"documentation": [{"body": "First"}, {"body": "Second"}]},
        })

        assert entity.attributes.documentation == "First\nSecond"

    def test_missing_id_is_rejected(self):
        with pytest.raises(ValidationError, match="no id"):
            record_to_entity({"eClass": "RequirementDefinition", "properties": {}})

    def test_unknown_class_is_rejected(self):
        with pytest.raises(ValidationError, match="Unsupported element class"):
            record_to_entity({"elementId": "X-1", "eClass": "PartUsage"})


class TestEntityToRecord:
    def test_inverse_mapping(self):
        record = {
            "elementId": "U-1",
            "eClass": "RequirementUsage",
            "properties": {"declaredName": "Front axle", "status": "draft", "of": "R-1", "priority": "high"},
        }

        mapped = entity_to_record(record_to_entity(record))

        assert mapped == record


class TestPageToResponse:
    def test_paged_payload(self):
        response = page_to_response({
            "content": [{"elementId": "R-1", "eClass": "RequirementDefinition", "properties": {}}],
            "page": 2,
            "size": 1,
            "totalElements": 7,
            "totalPages": 7,
            "first": False,
            "last": False,
        })

        assert [e.id for e in response.content] == ["R-1"]
        assert (response.page, response.total_elements, response.first) == (2, 7, False)
