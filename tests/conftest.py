"""
Shared fixtures for the test suite.
"""

from __future__ import annotations

from typing import List

import pytest

from hybridrag.rag import Chunk, Origin

from stubs import make_chunk


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def vector_chunks() -> List[Chunk]:
    """Ten vector chunks with descending scores."""
    return [make_chunk(f"vec_{i}", f"Vector passage {i}.", score=1.0 - i * 0.05) for i in range(10)]


@pytest.fixture
def graph_chunk() -> Chunk:
    """One graph path chunk."""
    return make_chunk(
        "graph_doc1_c7",
        "Document: Handbook > Document: Handbook > Section: Safety > Chunk: Wear goggles.",
        origin=Origin.GRAPH,
        score=0.77,
        root_id="doc1",
        target_id="c7",
        path_length=2,
    )
