"""
Reranker race: run every configured strategy concurrently against one shared deadline
and settle on the first strategy to finish: a structurally valid ordering wins,
an error or an empty ordering fails the race.

Losing strategies are cancelled as soon as a winner is chosen or the deadline passes;
their results are never observed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from hybridrag.errors import ConfigurationError, RerankParseError, RerankRaceError, RerankTimeoutError

from .chunk import Chunk, RankMeta, RerankRaceResult
from .rerankers import Reranker, pad_permutation, unique_valid

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_MS = 950.0
NOOP_STRATEGY = "noop"


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


def _valid_ordering(raw: Any, n: int) -> Tuple[List[int], Optional[Exception]]:
    """Padded ordering from a strategy result, or the parse error that disqualifies it."""
    try:
        indices = unique_valid(raw or [], n)
    except TypeError as e:
        return [], RerankParseError(f"Reranker returned a non-integer ordering: {e}")
    if not indices:
        return [], RerankParseError("Reranker returned no valid positions")
    return pad_permutation(indices, n), None


@dataclass
class RerankRace:
    """
    Fan-out race over interchangeable reranker strategies.

    The first strategy to settle decides the race: a valid ordering wins, a failure
    fails the whole race. With fail_fast=False a failure is skipped and the race
    waits for another strategy until all have failed or the deadline passes.
    """

    strategies: Sequence[Reranker] = field(default_factory=list)
    deadline_ms: float = DEFAULT_DEADLINE_MS
    fail_fast: bool = True

    @property
    def available(self) -> bool:
        """True when at least one strategy is configured."""
        return len(self.strategies) > 0

    async def race(
        self,
        query: str,
        chunks: Sequence[Chunk],
        deadline_ms: Optional[float] = None,
    ) -> RerankRaceResult:
        """
        Race all strategies and return the winner's full ordering.

        Args:
            query: User query
            chunks: Candidates in baseline (merged) order
            deadline_ms: Ceiling for the whole race (default: self.deadline_ms)

        Returns:
            RerankRaceResult whose ordered_indices is a permutation of range(len(chunks)).

        Raises:
            ConfigurationError: no strategy configured
            RerankTimeoutError: deadline elapsed before any valid result
            RerankRaceError: a strategy failed (every strategy, with fail_fast=False)
        """
        n = len(chunks)
        if n <= 1:
            return RerankRaceResult(ordered_indices=list(range(n)), winner_strategy=NOOP_STRATEGY, latency_ms=0.0)
        if not self.strategies:
            raise ConfigurationError("No reranker strategies configured")

        deadline_s = (self.deadline_ms if deadline_ms is None else deadline_ms) / 1000.0
        texts = [c.text for c in chunks]
        loop = asyncio.get_running_loop()
        start = time.perf_counter()
        ends_at = loop.time() + deadline_s

        logger.info("Starting reranker race: %d strategies, %d documents", len(self.strategies), n)

        tasks: Dict[asyncio.Task, int] = {}
        for pos, strategy in enumerate(self.strategies):
            task = asyncio.create_task(strategy.rerank(query, texts), name=f"rerank-{strategy.name}")
            tasks[task] = pos
        pending = set(tasks)
        failures: List[str] = []

        try:
            while pending:
                remaining = ends_at - loop.time()
                if remaining <= 0:
                    break
                done, pending = await asyncio.wait(
                    pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )
                # several may finish in the same tick: registration order breaks ties
                for task in sorted(done, key=lambda t: tasks[t]):
                    strategy = self.strategies[tasks[task]]
                    error = task.exception()
                    if error is None:
                        ordered, error = _valid_ordering(task.result(), n)
                    if error is not None:
                        failures.append(f"{strategy.name}: {error}")
                        logger.warning(
                            "Reranker %s failed after %.0f ms: %s",
                            strategy.name,
                            _elapsed_ms(start),
                            error,
                        )
                        if self.fail_fast:
                            raise RerankRaceError(f"Reranker {strategy.name} failed: {error}") from error
                        continue

                    latency = _elapsed_ms(start)
                    logger.info("Reranker race won by %s in %.0f ms", strategy.name, latency)
                    return RerankRaceResult(
                        ordered_indices=ordered,
                        winner_strategy=strategy.name,
                        latency_ms=latency,
                    )
        finally:
            for task in pending:
                task.cancel()
            for task in tasks:
                if task.done() and not task.cancelled():
                    task.exception()  # mark retrieved; losers are discarded

        if pending:
            raise RerankTimeoutError(
                f"Reranker race timeout after {deadline_s * 1000:.0f}ms "
                f"({len(pending)} pending, {len(failures)} failed)"
            )
        raise RerankRaceError("All reranker strategies failed: " + "; ".join(failures))

    @staticmethod
    def apply(chunks: Sequence[Chunk], result: RerankRaceResult) -> List[Chunk]:
        """Reorder chunks by the winner and tag the new top chunk with rank_meta."""
        n = len(chunks)
        ordered = [chunks[i] for i in pad_permutation(result.ordered_indices, n)]
        if ordered:
            ordered[0] = ordered[0].with_rank_meta(
                RankMeta(winner_strategy=result.winner_strategy, latency_ms=result.latency_ms)
            )
        return ordered

    async def rerank(self, query: str, chunks: Sequence[Chunk]) -> List[Chunk]:
        """Race and apply. Lists of 0 or 1 chunk are returned unchanged."""
        if len(chunks) <= 1:
            return list(chunks)
        result = await self.race(query, chunks)
        return self.apply(chunks, result)
