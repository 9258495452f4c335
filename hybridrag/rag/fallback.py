"""
Rerank fallback chain: race -> single secondary reranker -> score sort.

The chain never raises; the last tier always produces an ordering.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from hybridrag.errors import ConfigurationError, RerankTimeoutError

from .chunk import Chunk
from .race import RerankRace
from .rerankers import Reranker, unique_valid

logger = logging.getLogger(__name__)

TIER_NONE = "none"
TIER_RACE = "race"
TIER_SECONDARY = "secondary"
TIER_SCORE = "score"


@dataclass
class RerankOutcome:
    """Reranked chunks plus the tier that produced them."""

    chunks: List[Chunk]
    tier: str


def _failure_reason(error: BaseException) -> str:
    if isinstance(error, ConfigurationError):
        return "not_configured"
    if isinstance(error, (RerankTimeoutError, TimeoutError)):
        return "timeout"
    return "error"


def score_sort(chunks: Sequence[Chunk], top_k: int) -> List[Chunk]:
    """Stable sort by the branch score, descending (missing score counts as 0)."""
    ordered = sorted(chunks, key=lambda c: c.score if c.score is not None else 0.0, reverse=True)
    return ordered[:top_k]


@dataclass
class RerankFallbackChain:
    """Ordered rerank tiers, each tried only when the previous one is unavailable or fails."""

    race: Optional[RerankRace] = None
    secondary: Optional[Reranker] = None

    async def rerank_with_tier(self, query: str, chunks: Sequence[Chunk], top_k: int = 5) -> RerankOutcome:
        """Rerank to at most top_k chunks and report which tier answered."""
        if top_k <= 0:
            return RerankOutcome(chunks=[], tier=TIER_NONE)
        if len(chunks) <= 1:
            return RerankOutcome(chunks=list(chunks)[:top_k], tier=TIER_NONE)

        n = len(chunks)

        # Tier 1: race
        start = time.perf_counter()
        if self.race is not None and self.race.available:
            try:
                result = await self.race.race(query, chunks)
                ordered = self.race.apply(chunks, result)[:top_k]
                logger.info(
                    "Rerank tier race: winner=%s latency=%.0fms kept=%d/%d",
                    result.winner_strategy,
                    result.latency_ms,
                    len(ordered),
                    n,
                )
                return RerankOutcome(chunks=ordered, tier=TIER_RACE)
            except Exception as e:
                logger.warning(
                    "Rerank tier race failed (reason=%s, chunks=%d, elapsed=%.0fms): %s",
                    _failure_reason(e),
                    n,
                    (time.perf_counter() - start) * 1000.0,
                    e,
                )
        else:
            logger.info("Rerank tier race skipped (reason=not_configured, chunks=%d)", n)

        # Tier 2: single secondary reranker
        start = time.perf_counter()
        if self.secondary is not None:
            try:
                indices = unique_valid(await self.secondary.rerank(query, [c.text for c in chunks]), n)
                if not indices:
                    raise ValueError("secondary reranker returned no positions")
                ordered = [chunks[i] for i in indices][:top_k]
                logger.info(
                    "Rerank tier secondary (%s): kept=%d/%d in %.0fms",
                    self.secondary.name,
                    len(ordered),
                    n,
                    (time.perf_counter() - start) * 1000.0,
                )
                return RerankOutcome(chunks=ordered, tier=TIER_SECONDARY)
            except Exception as e:
                logger.warning(
                    "Rerank tier secondary failed (reason=%s, chunks=%d, elapsed=%.0fms): %s",
                    _failure_reason(e),
                    n,
                    (time.perf_counter() - start) * 1000.0,
                    e,
                )
        else:
            logger.info("Rerank tier secondary skipped (reason=not_configured, chunks=%d)", n)

        # Tier 3: score sort
        logger.warning("Using score-based sorting fallback (chunks=%d)", n)
        return RerankOutcome(chunks=score_sort(chunks, top_k), tier=TIER_SCORE)

    async def rerank(self, query: str, chunks: Sequence[Chunk], top_k: int = 5) -> List[Chunk]:
        """Rerank to at most top_k chunks. Never raises."""
        outcome = await self.rerank_with_tier(query, chunks, top_k)
        return outcome.chunks


async def rerank_with_fallback(
    query: str,
    chunks: Sequence[Chunk],
    top_k: int = 5,
    *,
    race: Optional[RerankRace] = None,
    secondary: Optional[Reranker] = None,
) -> List[Chunk]:
    """Functional form of RerankFallbackChain.rerank."""
    return await RerankFallbackChain(race=race, secondary=secondary).rerank(query, chunks, top_k)
