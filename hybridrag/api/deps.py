"""
Build the RAG agent and its long-lived clients for the API (used in lifespan).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import httpx

from hybridrag.config import Settings
from hybridrag.errors import ConfigurationError
from hybridrag.generation import AnswerGenerator, GenerationConfig
from hybridrag.llm import create_client
from hybridrag.orchestrator import RAGAgent
from hybridrag.rag import (
    HybridRetriever,
    Neo4jGraphStore,
    PineconeVectorIndex,
    RAGConfig,
    RerankFallbackChain,
    RerankRace,
)
from hybridrag.rag.embeddings import create_embedder
from hybridrag.rag.rerankers import LLMListwiseReranker, build_race_strategies, build_secondary_reranker

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 5.0


@dataclass
class Services:
    """Agent plus the pooled clients it depends on."""

    agent: RAGAgent
    race: RerankRace
    graph_store: Optional[Neo4jGraphStore] = None
    closeables: List[Any] = field(default_factory=list)

    async def aclose(self) -> None:
        await _close_all(self.closeables)


async def _close_all(resources: List[Any]) -> None:
    """Close resources in reverse creation order; errors are logged, not raised."""
    for resource in reversed(resources):
        try:
            if isinstance(resource, httpx.AsyncClient):
                await resource.aclose()
            else:
                await resource.close()
        except Exception as e:
            logger.warning("Error closing %s: %s", type(resource).__name__, e)


async def build_services(settings: Optional[Settings] = None, config: Optional[RAGConfig] = None) -> Services:
    """
    Construct every collaborator once.

    Embedding and generation are required and raise ConfigurationError when their
    credentials are missing. Vector index, graph store and rerankers are optional:
    a missing one only disables its branch or tier. If any step fails, clients
    created so far are closed before the error propagates.
    """
    settings = settings or Settings.from_env()
    config = config or RAGConfig.from_env()
    closeables: List[Any] = []

    try:
        embedder = create_embedder(settings)
        if hasattr(embedder, "close"):
            closeables.append(embedder)
        llm = create_client(settings)
        closeables.append(llm)
        http = httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS)
        closeables.append(http)

        vector_index = None
        if settings.vector_configured:
            vector_index = PineconeVectorIndex.from_settings(settings)
        else:
            logger.warning("Pinecone not configured; vector branch disabled")

        graph_store = None
        if settings.graph_configured:
            graph_store = Neo4jGraphStore.from_settings(settings, http=http)
            closeables.append(graph_store)
        else:
            logger.warning("Neo4j not configured; graph branch disabled")

        strategies = build_race_strategies(settings, http) if config.use_race else []
        # the listwise strategy owns its own chat client
        closeables.extend(s.client for s in strategies if isinstance(s, LLMListwiseReranker))
        race = RerankRace(
            strategies=strategies,
            deadline_ms=config.rerank_deadline_ms,
            fail_fast=config.race_fail_fast,
        )
        secondary = build_secondary_reranker(settings, http) if config.use_secondary_reranker else None
    except Exception:
        await _close_all(closeables)
        raise

    logger.info(
        "Rerank chain: race=%s secondary=%s fail_fast=%s",
        [s.name for s in strategies] or "none",
        secondary.name if secondary else "none",
        config.race_fail_fast,
    )

    retriever = HybridRetriever(
        embedder=embedder,
        vector_index=vector_index,
        graph_store=graph_store,
        reranker=RerankFallbackChain(race=race, secondary=secondary),
        config=config,
    )
    generator = AnswerGenerator(llm, GenerationConfig.from_env())
    agent = RAGAgent(retriever=retriever, generator=generator, rag_config=config)
    return Services(agent=agent, race=race, graph_store=graph_store, closeables=closeables)


async def try_build_services() -> Optional[Services]:
    """build_services, or None (logged) when required configuration is missing."""
    try:
        return await build_services()
    except ConfigurationError as e:
        logger.error("RAG agent not initialized: %s", e)
        return None
