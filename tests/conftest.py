"""Shared pytest fixtures for testing."""

import itertools
import os
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

# Set test environment
os.environ["ENVIRONMENT"] = "development"
os.environ.setdefault("LOG_FORMAT", "console")

from policy_editor.canvas import GraphEditor, GraphValidator
from policy_editor.compiler import LegacyAdapter, PolicyCompiler
from policy_editor.config import NodeKind
from policy_editor.models import Graph
from policy_editor.nodes import get_node_registry
from policy_editor.policies import InMemoryPolicyRepository, PolicyEditorService


# =============================================================================
# Graph Fixtures
# =============================================================================


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic id generator."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def registry():
    """Process-wide node registry."""
    return get_node_registry()


@pytest.fixture
def graph(registry, id_factory) -> Graph:
    """Fresh graph holding only the entry node."""
    return GraphEditor.create_graph(registry, id_factory=id_factory)


@pytest.fixture
def editor(graph: Graph, registry) -> GraphEditor:
    """Editor over the fresh graph."""
    return GraphEditor(graph, registry)


@pytest.fixture
def entry_id(editor: GraphEditor) -> str:
    """Id of the entry node."""
    return editor.entry_nodes()[0].id


@pytest.fixture
def validator(registry) -> GraphValidator:
    return GraphValidator(registry)


@pytest.fixture
def compiler(registry) -> PolicyCompiler:
    return PolicyCompiler(registry)


@pytest.fixture
def adapter(registry) -> LegacyAdapter:
    return LegacyAdapter(registry)


@pytest.fixture
def queue_flow(editor: GraphEditor, entry_id: str):
    """Entry -> inbound numbers -> call queue."""
    input_node = editor.add_node(NodeKind.INPUT, {"x": 0, "y": 0})
    queue_node = editor.add_node(NodeKind.CALL_QUEUE, {"x": 100, "y": 0})
    editor.connect(entry_id, input_node.id)
    editor.connect(input_node.id, queue_node.id)
    return editor.graph, input_node, queue_node


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def repository() -> InMemoryPolicyRepository:
    return InMemoryPolicyRepository()


@pytest.fixture
def service(repository: InMemoryPolicyRepository) -> PolicyEditorService:
    return PolicyEditorService(repository)


# =============================================================================
# API Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def app(service: PolicyEditorService) -> AsyncGenerator[FastAPI, None]:
    """FastAPI application bound to a fresh in-memory service."""
    from policy_editor.main import app as fastapi_app, get_editor_service

    fastapi_app.dependency_overrides[get_editor_service] = lambda: service
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
