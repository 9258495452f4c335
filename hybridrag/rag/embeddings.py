"""
Query embedding providers.

- Pinecone hosted inference (default), optionally falling back to another embedder
- OpenAI embeddings
- Local sentence-transformers model
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol

from openai import AsyncOpenAI
from pinecone import Pinecone
from sentence_transformers import SentenceTransformer

from hybridrag.config import Settings
from hybridrag.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

OPENAI_EMBEDDING_MODEL = "text-embedding-3-small"
LOCAL_EMBEDDING_MODEL = "all-MiniLM-L6-v2"


class Embedder(Protocol):
    """Protocol for query embedding providers."""

    async def embed(self, text: str) -> List[float]:
        """Return a fixed-length vector for text. Raises UpstreamError on failure."""
        ...


def _embedding_values(response: Any) -> List[float]:
    """Pull the first dense vector out of a Pinecone inference response."""
    data = getattr(response, "data", None)
    if data is None and isinstance(response, dict):
        data = response.get("data") or response.get("embeddings")
    if not data:
        raise UpstreamError("Unexpected response format from Pinecone inference")
    first = data[0]
    values = getattr(first, "values", None)
    if values is None and isinstance(first, dict):
        values = first.get("values")
    if values is None and isinstance(first, (list, tuple)):
        values = first
    if not values:
        raise UpstreamError("Pinecone inference returned an empty embedding")
    return [float(v) for v in values]


@dataclass
class OpenAIEmbedder:
    """Embeddings from the OpenAI API."""

    client: AsyncOpenAI
    model: str = OPENAI_EMBEDDING_MODEL

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIEmbedder":
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY not set; OpenAI embeddings unavailable.")
        return cls(client=AsyncOpenAI(api_key=settings.openai_api_key))

    async def embed(self, text: str) -> List[float]:
        try:
            response = await self.client.embeddings.create(model=self.model, input=text)
        except Exception as e:
            raise UpstreamError(f"Failed to generate embedding with OpenAI: {e}") from e
        return list(response.data[0].embedding)

    async def close(self) -> None:
        await self.client.close()


@dataclass
class PineconeInferenceEmbedder:
    """Embeddings from Pinecone's hosted inference models, with an optional fallback."""

    client: Pinecone
    model: str = "llama-text-embed-v2"
    dimensions: int = 1024
    fallback: Optional[Embedder] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "PineconeInferenceEmbedder":
        if not settings.pinecone_api_key:
            raise ConfigurationError("PINECONE_API_KEY not set; Pinecone inference unavailable.")
        fallback: Optional[Embedder] = None
        if settings.openai_api_key:
            fallback = OpenAIEmbedder.from_settings(settings)
        return cls(
            client=Pinecone(api_key=settings.pinecone_api_key),
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            fallback=fallback,
        )

    def _embed_sync(self, text: str) -> List[float]:
        response = self.client.inference.embed(
            model=self.model,
            inputs=[text],
            parameters={"input_type": "query", "dimension": self.dimensions},
        )
        return _embedding_values(response)

    async def embed(self, text: str) -> List[float]:
        try:
            return await asyncio.to_thread(self._embed_sync, text)
        except Exception as e:
            if self.fallback is None:
                if isinstance(e, UpstreamError):
                    raise
                raise UpstreamError(f"Pinecone inference failed: {e}") from e
            logger.warning("Pinecone inference failed, falling back to secondary embedder: %s", e)
            return await self.fallback.embed(text)

    async def close(self) -> None:
        """Close the fallback embedder's client (the Pinecone client holds no async resources)."""
        close = getattr(self.fallback, "close", None)
        if close is not None:
            await close()


@dataclass
class SentenceTransformerEmbedder:
    """Local sentence-transformers embeddings (normalized)."""

    model_name: str = LOCAL_EMBEDDING_MODEL
    _model: SentenceTransformer = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._model = SentenceTransformer(self.model_name)

    def _encode(self, text: str) -> List[float]:
        emb = self._model.encode(
            [text],
            convert_to_numpy=True,
            normalize_embeddings=True,
        )[0]
        return [float(x) for x in emb]

    async def embed(self, text: str) -> List[float]:
        try:
            return await asyncio.to_thread(self._encode, text)
        except Exception as e:
            raise UpstreamError(f"Local embedding failed: {e}") from e


def create_embedder(settings: Settings) -> Embedder:
    """Build the embedder named by EMBEDDING_PROVIDER (pinecone, openai or local)."""
    provider = settings.embedding_provider
    if provider == "openai":
        return OpenAIEmbedder.from_settings(settings)
    if provider == "local":
        model = settings.embedding_model
        if model == "llama-text-embed-v2":
            model = LOCAL_EMBEDDING_MODEL
        return SentenceTransformerEmbedder(model_name=model)
    if provider == "pinecone":
        if settings.pinecone_api_key:
            return PineconeInferenceEmbedder.from_settings(settings)
        return OpenAIEmbedder.from_settings(settings)
    raise ConfigurationError(f"Unknown EMBEDDING_PROVIDER: {provider!r}")
