"""
Vector branch: namespaced nearest-neighbour lookup mapped to canonical chunks.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

import numpy as np
from pinecone import Pinecone

from hybridrag.config import Settings
from hybridrag.errors import ConfigurationError, UpstreamError

from .chunk import Chunk, Origin

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"
TEXT_FIELDS = ("chunk_text", "original_text")


@dataclass
class VectorMatch:
    """Raw match returned by a vector index."""

    id: str
    score: Optional[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


class VectorIndex(Protocol):
    """Protocol for namespaced vector indexes."""

    async def query_namespace(
        self, namespace: str, vector: Sequence[float], top_k: int
    ) -> List[VectorMatch]:
        """Return up to top_k nearest matches (with metadata) inside namespace."""
        ...


class PineconeVectorIndex:
    """Pinecone index; each user lives in its own namespace."""

    def __init__(self, client: Pinecone, index_name: str, host: str = ""):
        self.index_name = index_name
        self._index = client.Index(index_name, host=host) if host else client.Index(index_name)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PineconeVectorIndex":
        if not settings.vector_configured:
            raise ConfigurationError("PINECONE_API_KEY and PINECONE_INDEX_NAME are required for vector search.")
        return cls(
            Pinecone(api_key=settings.pinecone_api_key),
            settings.pinecone_index_name,
            host=settings.pinecone_index_host,
        )

    def _query_sync(self, namespace: str, vector: Sequence[float], top_k: int) -> List[VectorMatch]:
        response = self._index.query(
            vector=list(vector),
            top_k=top_k,
            include_metadata=True,
            namespace=namespace,
        )
        matches = getattr(response, "matches", None)
        if matches is None and isinstance(response, dict):
            matches = response.get("matches", [])
        out: List[VectorMatch] = []
        for m in matches or []:
            if isinstance(m, dict):
                out.append(VectorMatch(id=m.get("id") or "", score=m.get("score"), metadata=dict(m.get("metadata") or {})))
            else:
                out.append(VectorMatch(id=m.id or "", score=m.score, metadata=dict(m.metadata or {})))
        return out

    async def query_namespace(
        self, namespace: str, vector: Sequence[float], top_k: int
    ) -> List[VectorMatch]:
        try:
            return await asyncio.to_thread(self._query_sync, namespace, vector, top_k)
        except Exception as e:
            raise UpstreamError(f"Pinecone query failed: {e}") from e


class InMemoryVectorIndex:
    """Cosine-similarity index held in numpy arrays, one table per namespace."""

    def __init__(self) -> None:
        self._ids: Dict[str, List[str]] = {}
        self._metadata: Dict[str, List[Dict[str, Any]]] = {}
        self._vectors: Dict[str, np.ndarray] = {}

    def upsert(
        self,
        namespace: str,
        item_id: str,
        vector: Sequence[float],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Insert a vector (normalized on the way in)."""
        v = np.asarray(vector, dtype=np.float32)
        norm = np.linalg.norm(v)
        if norm > 0:
            v = v / norm
        ids = self._ids.setdefault(namespace, [])
        metas = self._metadata.setdefault(namespace, [])
        if item_id in ids:
            pos = ids.index(item_id)
            self._vectors[namespace][pos] = v
            metas[pos] = dict(metadata or {})
            return
        ids.append(item_id)
        metas.append(dict(metadata or {}))
        existing = self._vectors.get(namespace)
        self._vectors[namespace] = v[None, :] if existing is None else np.vstack([existing, v])

    async def query_namespace(
        self, namespace: str, vector: Sequence[float], top_k: int
    ) -> List[VectorMatch]:
        emb = self._vectors.get(namespace)
        if emb is None or top_k <= 0:
            return []
        q = np.asarray(vector, dtype=np.float32)
        norm = np.linalg.norm(q)
        if norm > 0:
            q = q / norm
        sims = np.dot(emb, q)
        idxs = np.argsort(-sims)[:top_k]
        ids = self._ids[namespace]
        metas = self._metadata[namespace]
        return [
            VectorMatch(id=ids[int(i)], score=float(sims[i]), metadata=dict(metas[int(i)]))
            for i in idxs
        ]


def match_text(metadata: Dict[str, Any]) -> str:
    """Primary chunk text from whichever known metadata field is populated."""
    for key in TEXT_FIELDS:
        value = metadata.get(key)
        if value:
            return str(value)
    return ""


async def vector_search(
    index: Optional[VectorIndex],
    query_embedding: Sequence[float],
    user_id: str,
    top_k: int = 10,
) -> List[Chunk]:
    """
    Query the user's namespace and map matches to vector-origin chunks.

    Never raises: index errors are logged and yield an empty list.
    """
    if index is None:
        logger.warning("Vector index not configured, skipping vector search")
        return []

    namespace = user_id or DEFAULT_NAMESPACE
    try:
        matches = await index.query_namespace(namespace, query_embedding, top_k)
    except Exception as e:
        logger.error("Vector search failed for namespace %s: %s", namespace, e)
        return []

    chunks = [
        Chunk(
            id=m.id or "",
            text=match_text(m.metadata),
            origin=Origin.VECTOR,
            score=m.score,
            metadata=dict(m.metadata),
        )
        for m in matches
    ]
    logger.info("Vector search returned %d chunks from namespace %s", len(chunks), namespace)
    return chunks
