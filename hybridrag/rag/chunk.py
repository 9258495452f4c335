"""
Canonical retrieval unit shared by both retrieval branches, the reranker and generation.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any, Dict, List, Optional


class Origin(str, Enum):
    """Retrieval branch that produced a chunk."""

    VECTOR = "vector"
    GRAPH = "graph"


@dataclasses.dataclass(frozen=True)
class RankMeta:
    """Provenance of the race winner, attached to the post-rerank top chunk only."""

    winner_strategy: str
    latency_ms: float


@dataclasses.dataclass(frozen=True)
class Chunk:
    """A retrieved piece of text plus provenance."""

    id: str
    text: str
    origin: Origin
    score: Optional[float] = None
    metadata: Dict[str, Any] = dataclasses.field(default_factory=dict)
    rank_meta: Optional[RankMeta] = None

    def with_rank_meta(self, rank_meta: RankMeta) -> "Chunk":
        """Return a copy carrying rank_meta; the original chunk is left untouched."""
        return dataclasses.replace(self, rank_meta=rank_meta)

    @property
    def is_graph(self) -> bool:
        return self.origin is Origin.GRAPH


@dataclasses.dataclass
class RerankRaceResult:
    """Outcome of a successful reranker race."""

    ordered_indices: List[int]
    winner_strategy: str
    latency_ms: float
