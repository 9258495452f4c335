"""
FastAPI application for the hybrid RAG API.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hybridrag.logging_config import setup_logging

from .deps import try_build_services
from .routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the agent and its clients on startup; close them on shutdown."""
    setup_logging()
    services = await try_build_services()
    app.state.services = services
    yield
    if services is not None:
        await services.aclose()
    app.state.services = None


app = FastAPI(
    title="hybridrag API",
    description="Hybrid vector + graph RAG with a reranker race and cited answers",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
app.include_router(router)
