"""
Answer generator: builds context from reranked chunks, makes one LLM call,
extracts the cited source ids.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from hybridrag.llm.client import ChatClient
from hybridrag.rag.chunk import Chunk

from .citations import extract_citations
from .config import GenerationConfig
from .context_builder import build_context
from .prompts import (
    GENERATION_FAILED_ANSWER,
    INSUFFICIENT_CONTEXT_ANSWER,
    SYSTEM_PROMPT,
    USER_PROMPT,
)

logger = logging.getLogger(__name__)


@dataclass
class GeneratedAnswer:
    """Result of RAG answer generation."""

    answer: str
    citations: List[str] = field(default_factory=list)
    failed: bool = False


class AnswerGenerator:
    """Generate cited answers from a query and reranked chunks."""

    def __init__(self, client: Optional[ChatClient], config: Optional[GenerationConfig] = None):
        self.client = client
        self.config = config or GenerationConfig()

    @property
    def available(self) -> bool:
        """True when a generation backend is configured."""
        return self.client is not None

    async def generate(self, query: str, chunks: Sequence[Chunk], top_k: int = 5) -> GeneratedAnswer:
        """
        Answer query from the first top_k chunks.

        No chunks short-circuits to the insufficient-context answer without calling
        the backend. An empty or failed completion yields the canned failure answer;
        nothing is retried.
        """
        if not chunks:
            logger.warning("Generation: no chunks provided")
            return GeneratedAnswer(answer=INSUFFICIENT_CONTEXT_ANSWER)
        if self.client is None:
            logger.error("Generation backend not configured")
            return GeneratedAnswer(answer=GENERATION_FAILED_ANSWER, failed=True)

        selected = list(chunks[:top_k])
        context = build_context(selected, max_tokens=self.config.context_max_tokens)
        user_prompt = USER_PROMPT.format(query=query, context=context)
        logger.info("Starting RAG generation with %d chunks", len(selected))

        start = time.perf_counter()
        try:
            answer = await self.client.complete(
                SYSTEM_PROMPT,
                user_prompt,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            )
        except Exception as e:
            logger.error("RAG generation failed: %s", e)
            return GeneratedAnswer(answer=GENERATION_FAILED_ANSWER, failed=True)
        latency_ms = (time.perf_counter() - start) * 1000.0

        if not answer or not answer.strip():
            logger.error("Generation backend returned an empty answer (%.0f ms)", latency_ms)
            return GeneratedAnswer(answer=GENERATION_FAILED_ANSWER, failed=True)

        citations = extract_citations(answer)
        logger.info(
            "RAG generation completed: %d chars, %d citations in %.0f ms",
            len(answer),
            len(citations),
            latency_ms,
        )
        return GeneratedAnswer(answer=answer, citations=citations)
