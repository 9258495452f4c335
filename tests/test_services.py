"""
Tests for service construction and client cleanup.
"""

from __future__ import annotations

import pytest

from hybridrag.api import deps
from hybridrag.config import Settings
from hybridrag.errors import ConfigurationError
from hybridrag.rag import RAGConfig
from hybridrag.rag.rerankers import LLMListwiseReranker

from stubs import StubChatClient, StubEmbedder


class ClosableEmbedder(StubEmbedder):
    closed = False

    async def close(self) -> None:
        self.closed = True


class ClosableChatClient(StubChatClient):
    closed = False

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def stub_clients(monkeypatch):
    """Replace the embedder and generation client with closable stubs."""
    embedder = ClosableEmbedder()
    llm = ClosableChatClient(answer="ok")
    monkeypatch.setattr(deps, "create_embedder", lambda settings: embedder)
    monkeypatch.setattr(deps, "create_client", lambda settings: llm)
    return embedder, llm


@pytest.mark.anyio
async def test_listwise_client_is_closed_with_services(stub_clients):
    embedder, llm = stub_clients
    services = await deps.build_services(
        Settings(groq_api_key="gsk-test"), RAGConfig(use_secondary_reranker=False)
    )

    listwise = [s for s in services.race.strategies if isinstance(s, LLMListwiseReranker)]
    assert len(listwise) == 1
    assert listwise[0].client in services.closeables
    assert listwise[0].client is not llm

    await services.aclose()

    assert listwise[0].client.client.is_closed()
    assert embedder.closed
    assert llm.closed


@pytest.mark.anyio
async def test_failed_build_closes_clients_already_created(stub_clients, monkeypatch):
    embedder, llm = stub_clients
    seen = {}

    def broken_graph(settings, http=None):
        seen["http"] = http
        raise RuntimeError("neo4j driver unavailable")

    monkeypatch.setattr(deps.Neo4jGraphStore, "from_settings", staticmethod(broken_graph))
    settings = Settings(groq_api_key="gsk-test", neo4j_uri="bolt://localhost:7687", neo4j_password="pw")

    with pytest.raises(RuntimeError, match="neo4j driver unavailable"):
        await deps.build_services(settings, RAGConfig())

    assert seen["http"].is_closed
    assert embedder.closed
    assert llm.closed


@pytest.mark.anyio
async def test_try_build_services_returns_none_without_configuration(monkeypatch):
    def missing(settings):
        raise ConfigurationError("no embedding provider")

    monkeypatch.setattr(deps, "create_embedder", missing)

    assert await deps.try_build_services() is None
