"""
Test configuration and fixtures for triview tests.
"""
import pytest
from fastapi.testclient import TestClient

from triview.main import app
from triview.application.projection_engine import ProjectionEngine
from triview.application.query_coordinator import QueryCoordinator
from triview.application.selection_coordinator import SelectionCoordinator
from triview.application.store import NormalizedStore
from triview.dependencies import build_session
from triview.domain.entities import EntityKind, build_entity
from triview.infrastructure.memory_query_service import InMemoryQueryService


def definition(entity_id, name=None, **attributes):
    return build_entity(entity_id, EntityKind.DEFINITION, declared_name=name or entity_id, **attributes)


def usage(entity_id, of=None, name=None, **attributes):
    relations = {"of": of} if of is not None else {}
    return build_entity(entity_id, EntityKind.USAGE, relations=relations, declared_name=name or entity_id, **attributes)


def dependency(entity_id, source, target, **attributes):
    return build_entity(
        entity_id,
        EntityKind.DEPENDENCY,
        relations={"source": source, "target": target},
        **attributes,
    )


@pytest.fixture
def store():
    """Create an empty store."""
    return NormalizedStore("test")


@pytest.fixture
def selection(store):
    coordinator = SelectionCoordinator(store)
    yield coordinator
    coordinator.close()


@pytest.fixture
def engine(store, selection):
    projection = ProjectionEngine(store, selection)
    yield projection
    projection.close()


@pytest.fixture
def sample_entities():
    """Two definitions, two usages and a dependency between them."""
    return [
        definition("R-1", "Braking distance", declared_short_name="REQ-001", status="approved"),
        definition("R-2", "Battery range", declared_short_name="REQ-002", status="draft"),
        usage("U-1", of="R-1", name="Front axle braking", status="approved"),
        usage("U-2", of="R-2", name="Winter range", status="draft"),
        dependency("D-1", "U-2", "R-2", declared_name="Range derives from capacity", dependency_type="derive"),
    ]


@pytest.fixture
def backend(sample_entities):
    """In-memory query and mutation service holding the sample entities."""
    return InMemoryQueryService(sample_entities)


@pytest.fixture
def coordinator(store, backend):
    return QueryCoordinator(store, backend, mutation_service=backend)


@pytest.fixture
def session(backend):
    """A fully wired session over the in-memory backend."""
    view_session = build_session(backend, mutation_service=backend, name="test")
    yield view_session
    view_session.close()


@pytest.fixture
def client(session):
    """Create test client bound to a fresh session."""
    app.state.session = session
    yield TestClient(app)
    app.state.session = None
