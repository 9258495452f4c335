"""
Hybrid retriever: embed once, run vector and graph branches concurrently,
merge/dedup, then rerank through the fallback chain.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .chunk import Chunk
from .config import RAGConfig
from .embeddings import Embedder
from .fallback import TIER_NONE, RerankFallbackChain
from .graph import GraphStore, graph_search
from .merge import merge_branches
from .vector import VectorIndex, vector_search

logger = logging.getLogger(__name__)


@dataclass
class RetrievalResult:
    """Result from a retrieval operation."""

    chunks: List[Chunk] = field(default_factory=list)
    vector_count: int = 0
    graph_count: int = 0
    merged_count: int = 0
    rerank_tier: str = TIER_NONE

    @property
    def reranked_count(self) -> int:
        return len(self.chunks)


class HybridRetriever:
    """Vector + graph retrieval with race-first reranking."""

    def __init__(
        self,
        embedder: Embedder,
        vector_index: Optional[VectorIndex] = None,
        graph_store: Optional[GraphStore] = None,
        reranker: Optional[RerankFallbackChain] = None,
        config: Optional[RAGConfig] = None,
    ):
        self.embedder = embedder
        self.vector_index = vector_index
        self.graph_store = graph_store
        self.reranker = reranker or RerankFallbackChain()
        self.config = config or RAGConfig()

    async def retrieve(self, query: str, user_id: str, top_k: Optional[int] = None) -> RetrievalResult:
        """
        Run the full retrieval pipeline for one request. Never raises.

        Args:
            query: User query
            user_id: Namespace / graph partition to search
            top_k: Number of chunks to keep after reranking (default: config.top_k)
        """
        if top_k is None:
            top_k = self.config.top_k
        logger.info("Starting hybrid retrieval (user=%s, top_k=%d): %s", user_id, top_k, query[:100])

        try:
            embedding = await self.embedder.embed(query)
        except Exception as e:
            logger.error("Query embedding failed, returning no chunks: %s", e)
            return RetrievalResult()

        vector_chunks, graph_chunks = await asyncio.gather(
            vector_search(self.vector_index, embedding, user_id, self.config.vector_top_k),
            graph_search(self.graph_store, embedding, user_id),
        )
        merged = merge_branches(vector_chunks, graph_chunks)
        logger.info(
            "Branches done: vector=%d graph=%d merged=%d",
            len(vector_chunks),
            len(graph_chunks),
            len(merged),
        )

        outcome = await self.reranker.rerank_with_tier(query, merged, top_k)
        result = RetrievalResult(
            chunks=outcome.chunks,
            vector_count=len(vector_chunks),
            graph_count=len(graph_chunks),
            merged_count=len(merged),
            rerank_tier=outcome.tier,
        )
        logger.info(
            "Hybrid retrieval completed: %d chunks (tier=%s)",
            result.reranked_count,
            result.rerank_tier,
        )
        return result
