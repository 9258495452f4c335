"""
API routes: query, health, graph stats.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from hybridrag.rag.chunk import Chunk

from .deps import Services
from .models import (
    ChunkOut,
    GraphStatsResponse,
    HealthResponse,
    QueryRequest,
    QueryResponse,
    RankMetaOut,
)

router = APIRouter(prefix="/api", tags=["api"])

SNIPPET_CHARS = 300


def _get_services(request: Request) -> Optional[Services]:
    return getattr(request.app.state, "services", None)


def _unavailable(detail: str) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": detail})


def _chunk_out(chunk: Chunk) -> ChunkOut:
    text = chunk.text or ""
    rank_meta = None
    if chunk.rank_meta is not None:
        rank_meta = RankMetaOut(
            winner_strategy=chunk.rank_meta.winner_strategy,
            latency_ms=round(chunk.rank_meta.latency_ms, 1),
        )
    return ChunkOut(
        id=chunk.id,
        origin=chunk.origin.value,
        score=chunk.score,
        snippet=(text[:SNIPPET_CHARS] + "…") if len(text) > SNIPPET_CHARS else text,
        rank_meta=rank_meta,
    )


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Health check with availability of the optional tiers."""
    services = _get_services(request)
    if services is None:
        return HealthResponse(status="ok", agent_ready=False)
    return HealthResponse(
        status="ok",
        agent_ready=True,
        race_available=services.race.available,
        generation_available=services.agent.generator.available,
    )


@router.post("/query", response_model=QueryResponse)
async def query(request: Request, body: QueryRequest) -> QueryResponse | JSONResponse:
    """Answer a question from the user's documents with inline citations."""
    services = _get_services(request)
    if services is None:
        return _unavailable("Service unavailable: RAG agent not initialized (check configuration).")
    resp = await services.agent.answer(body.query, user_id=body.user_id, top_k=body.top_k)
    return QueryResponse(
        answer=resp.answer,
        citations=resp.citations,
        chunks=[_chunk_out(c) for c in resp.chunks],
        vector_count=resp.vector_count,
        graph_count=resp.graph_count,
        rerank_tier=resp.rerank_tier,
    )


@router.get("/graph/stats", response_model=GraphStatsResponse)
async def graph_stats(request: Request) -> GraphStatsResponse | JSONResponse:
    """Graph database size, with warnings near the free-tier limits."""
    services = _get_services(request)
    if services is None or services.graph_store is None:
        return _unavailable("Service unavailable: graph store not configured.")
    try:
        stats = await services.graph_store.database_stats()
    except Exception as e:
        return GraphStatsResponse(warnings=[f"Error checking stats: {e}"])
    return GraphStatsResponse(
        node_count=stats.node_count,
        relationship_count=stats.relationship_count,
        warnings=stats.warnings,
    )
