"""
Request and response models for the RAG API.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    """Request body for POST /api/query."""

    query: str = Field(..., min_length=1, description="User question")
    user_id: str = Field("default-user", min_length=1, description="Namespace / graph partition to search")
    top_k: int = Field(5, ge=1, le=20)


class RankMetaOut(BaseModel):
    """Race provenance on the top chunk."""

    winner_strategy: str
    latency_ms: float


class ChunkOut(BaseModel):
    """Chunk used for the answer (debug view)."""

    id: str
    origin: str
    score: Optional[float] = None
    snippet: str = ""
    rank_meta: Optional[RankMetaOut] = None


class QueryResponse(BaseModel):
    """Response for POST /api/query."""

    answer: str
    citations: List[str] = Field(default_factory=list)
    chunks: List[ChunkOut] = Field(default_factory=list)
    vector_count: int = 0
    graph_count: int = 0
    rerank_tier: str = "none"


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    agent_ready: bool = False
    race_available: bool = False
    generation_available: bool = False


class GraphStatsResponse(BaseModel):
    """Response for GET /api/graph/stats."""

    node_count: int = 0
    relationship_count: int = 0
    warnings: List[str] = Field(default_factory=list)
