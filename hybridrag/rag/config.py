"""
Configuration for the retrieval and rerank pipeline.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RAGConfig:
    """Configuration for RAG retrieval."""

    top_k: int = 5
    vector_top_k: int = 10
    rerank_deadline_ms: float = 950.0
    race_fail_fast: bool = True
    use_race: bool = True
    use_secondary_reranker: bool = True

    @classmethod
    def from_env(cls) -> "RAGConfig":
        """Read overrides from RAG_TOP_K, RAG_VECTOR_TOP_K, RERANK_DEADLINE_MS, RERANK_FAIL_FAST."""
        base = cls()
        return cls(
            top_k=int(os.getenv("RAG_TOP_K", base.top_k)),
            vector_top_k=int(os.getenv("RAG_VECTOR_TOP_K", base.vector_top_k)),
            rerank_deadline_ms=float(os.getenv("RERANK_DEADLINE_MS", base.rerank_deadline_ms)),
            race_fail_fast=_env_bool("RERANK_FAIL_FAST", base.race_fail_fast),
            use_race=_env_bool("RERANK_USE_RACE", base.use_race),
            use_secondary_reranker=_env_bool("RERANK_USE_SECONDARY", base.use_secondary_reranker),
        )
