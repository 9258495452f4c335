"""
Tests for the vector and graph retrieval branches.
"""

from __future__ import annotations

import pytest

from hybridrag.errors import UpstreamError
from hybridrag.rag import InMemoryVectorIndex, Origin, graph_search, vector_search
from hybridrag.rag.graph import GraphNode, GraphRoot, PathNode, capacity_warnings, linearize_path
from hybridrag.rag.vector import VectorMatch

from stubs import StubGraphStore, StubVectorIndex

PATH = [
    PathNode(label="Document", content="Handbook"),
    PathNode(label="Section", content="Safety"),
    PathNode(label="Chunk", content="Wear goggles."),
]


@pytest.mark.anyio
async def test_vector_search_maps_text_fields():
    index = StubVectorIndex(
        matches=[
            VectorMatch(id="a", score=0.9, metadata={"chunk_text": "primary", "doc_label": "L"}),
            VectorMatch(id="b", score=0.8, metadata={"original_text": "legacy"}),
            VectorMatch(id="c", score=0.7, metadata={}),
        ]
    )

    chunks = await vector_search(index, [0.1, 0.2], "user-1", top_k=10)

    assert [c.text for c in chunks] == ["primary", "legacy", ""]
    assert all(c.origin == Origin.VECTOR for c in chunks)
    assert chunks[0].score == 0.9
    assert chunks[0].metadata["doc_label"] == "L"
    assert index.namespaces == ["user-1"]


@pytest.mark.anyio
async def test_vector_search_defaults_namespace():
    index = StubVectorIndex()
    await vector_search(index, [0.1], "", top_k=3)
    assert index.namespaces == ["default"]


@pytest.mark.anyio
async def test_vector_search_swallows_index_errors():
    index = StubVectorIndex(error=UpstreamError("Pinecone query failed"))
    assert await vector_search(index, [0.1], "user-1") == []


@pytest.mark.anyio
async def test_vector_search_without_index():
    assert await vector_search(None, [0.1], "user-1") == []


@pytest.mark.anyio
async def test_in_memory_index_ranks_by_cosine():
    index = InMemoryVectorIndex()
    index.upsert("u", "x", [1.0, 0.0], {"chunk_text": "east"})
    index.upsert("u", "y", [0.0, 1.0], {"chunk_text": "north"})
    index.upsert("other", "z", [1.0, 0.0], {"chunk_text": "elsewhere"})

    chunks = await vector_search(index, [0.9, 0.1], "u", top_k=5)

    assert [c.id for c in chunks] == ["x", "y"]
    assert chunks[0].score > chunks[1].score


@pytest.mark.anyio
async def test_in_memory_upsert_replaces_existing_id():
    index = InMemoryVectorIndex()
    index.upsert("u", "x", [1.0, 0.0], {"chunk_text": "old"})
    index.upsert("u", "x", [0.0, 1.0], {"chunk_text": "new"})

    matches = await index.query_namespace("u", [0.0, 1.0], 5)

    assert len(matches) == 1
    assert matches[0].metadata["chunk_text"] == "new"


@pytest.mark.anyio
async def test_graph_search_returns_linearized_path():
    store = StubGraphStore(
        target=GraphNode(id="c7", text="Wear goggles.", score=0.77),
        root=GraphRoot(id="doc1", title="Handbook"),
        path=PATH,
    )

    chunks = await graph_search(store, [0.1], "user-1")

    assert len(chunks) == 1
    chunk = chunks[0]
    assert chunk.id == "graph_doc1_c7"
    assert chunk.origin == Origin.GRAPH
    assert chunk.score == 0.77
    assert chunk.text == (
        "Document: Handbook > Document: Handbook > Section: Safety > Chunk: Wear goggles."
    )
    assert chunk.metadata == {"root_id": "doc1", "target_id": "c7", "path_length": 2}


@pytest.mark.anyio
async def test_graph_search_no_target():
    store = StubGraphStore(target=None)
    assert await graph_search(store, [0.1], "user-1") == []
    assert "find_root_for" not in store.calls


@pytest.mark.anyio
async def test_graph_search_no_root_or_path():
    target = GraphNode(id="c7", text="t", score=0.5)
    assert await graph_search(StubGraphStore(target=target, root=None), [0.1], "u") == []
    no_path = StubGraphStore(target=target, root=GraphRoot(id="doc1"), path=[])
    assert await graph_search(no_path, [0.1], "u") == []


@pytest.mark.anyio
async def test_graph_search_index_missing_uses_fallback():
    store = StubGraphStore(
        match_error=RuntimeError("There is no such vector schema index: chunkEmbedding"),
        any_node=GraphNode(id="c1", text="Some chunk text"),
    )

    chunks = await graph_search(store, [0.1], "user-1")

    assert len(chunks) == 1
    assert chunks[0].id == "graph_c1"
    assert chunks[0].text == "Some chunk text"
    assert chunks[0].score is None
    assert chunks[0].metadata == {}
    assert store.calls["find_any_node"] == 1


@pytest.mark.anyio
async def test_graph_search_fallback_failure_is_empty():
    store = StubGraphStore(
        match_error=RuntimeError("Index not found"),
        fallback_error=RuntimeError("connection refused"),
    )
    assert await graph_search(store, [0.1], "user-1") == []


@pytest.mark.anyio
async def test_graph_search_other_errors_do_not_fall_back():
    store = StubGraphStore(match_error=RuntimeError("connection refused"))

    assert await graph_search(store, [0.1], "user-1") == []
    assert "find_any_node" not in store.calls


@pytest.mark.anyio
async def test_graph_search_without_store():
    assert await graph_search(None, [0.1], "user-1") == []


def test_linearize_path_format():
    text = linearize_path(GraphRoot(id="d", title="Guide"), [PathNode("Section", "Intro")])
    assert text == "Document: Guide > Section: Intro"


def test_capacity_warnings():
    assert capacity_warnings(10, 10) == []
    warnings = capacity_warnings(185_000, 400_000)
    assert len(warnings) == 2
    assert "approaching" in warnings[0]
    assert "exceeded" in warnings[1]
