"""
RAG agent: hybrid retrieval followed by cited answer generation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from hybridrag.generation import GENERATION_FAILED_ANSWER, INSUFFICIENT_CONTEXT_ANSWER, AnswerGenerator
from hybridrag.rag.chunk import Chunk
from hybridrag.rag.config import RAGConfig
from hybridrag.rag.fallback import TIER_NONE
from hybridrag.rag.retriever import HybridRetriever

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "default-user"


@dataclass
class AgentResponse:
    """Response from the RAG agent."""

    answer: str
    citations: List[str] = field(default_factory=list)
    chunks: List[Chunk] = field(default_factory=list)
    vector_count: int = 0
    graph_count: int = 0
    rerank_tier: str = TIER_NONE

    @property
    def sources_used(self) -> List[str]:
        return [c.id for c in self.chunks]


class RAGAgent:
    """Single entry point: {query, user_id, top_k} -> answer with citations."""

    def __init__(
        self,
        retriever: HybridRetriever,
        generator: AnswerGenerator,
        rag_config: Optional[RAGConfig] = None,
    ):
        self.retriever = retriever
        self.generator = generator
        self.rag_config = rag_config or RAGConfig()

    async def answer(
        self,
        query: str,
        user_id: str = DEFAULT_USER_ID,
        top_k: Optional[int] = None,
    ) -> AgentResponse:
        """Retrieve, rerank, generate. Never raises; worst case is the insufficient-context answer."""
        if top_k is None:
            top_k = self.rag_config.top_k
        if not query or not query.strip():
            return AgentResponse(answer=INSUFFICIENT_CONTEXT_ANSWER)

        try:
            retrieval = await self.retriever.retrieve(query, user_id, top_k)
        except Exception as e:
            logger.error("Hybrid retrieval failed unexpectedly: %s", e)
            return AgentResponse(answer=INSUFFICIENT_CONTEXT_ANSWER)

        try:
            generated = await self.generator.generate(query, retrieval.chunks, top_k)
        except Exception as e:
            logger.error("Answer generation failed unexpectedly: %s", e)
            return AgentResponse(answer=GENERATION_FAILED_ANSWER, chunks=retrieval.chunks)

        return AgentResponse(
            answer=generated.answer,
            citations=generated.citations,
            chunks=retrieval.chunks,
            vector_count=retrieval.vector_count,
            graph_count=retrieval.graph_count,
            rerank_tier=retrieval.rerank_tier,
        )
