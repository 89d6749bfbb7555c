"""
Shared fixtures for diagram engine tests
"""
import pytest

from diagramflow import (
    DiagramDocument,
    DiagramEdge,
    DiagramGroup,
    DiagramMeta,
    DiagramNode,
    create_empty_document,
)


def make_node(node_id, x=0, y=0, **fields):
    """Build a node with the usual defaults."""
    return DiagramNode(id=node_id, label=fields.pop("label", node_id.upper()), x=x, y=y, **fields)


def make_doc(nodes=(), edges=(), groups=(), **meta):
    """Build a document around the given entities."""
    return DiagramDocument(
        meta=DiagramMeta(
            title=meta.pop("title", "Test"),
            created="2024-01-01T00:00:00.000Z",
            modified="2024-01-01T00:00:00.000Z",
            **meta,
        ),
        nodes=list(nodes),
        edges=list(edges),
        groups=list(groups),
    )


@pytest.fixture
def id_generator():
    """Deterministic id generator: id1, id2, ..."""
    counter = {"n": 0}

    def generate():
        counter["n"] += 1
        return f"id{counter['n']}"

    return generate


@pytest.fixture
def empty_doc():
    """Freshly created empty document"""
    return create_empty_document("Test")


@pytest.fixture
def sample_doc():
    """
    Small pipeline: api -> db, api -> cache, with db and cache in a group
    and a standalone client node.
    """
    return make_doc(
        nodes=[
            make_node("api", 100, 100, label="API"),
            make_node("db", 400, 100, label="Database", group="storage"),
            make_node("cache", 400, 200, label="Cache", group="storage"),
            make_node("client", 100, 300, label="Client", pinned=True),
        ],
        edges=[
            DiagramEdge(id="e1", source="api", target="db"),
            DiagramEdge(id="e2", source="api", target="cache", label="reads"),
        ],
        groups=[DiagramGroup(id="storage", label="Storage")],
        title="Sample",
    )
