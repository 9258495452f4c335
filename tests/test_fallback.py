"""
Tests for the rerank fallback chain (race -> secondary -> score sort).
"""

from __future__ import annotations

import pytest

from hybridrag.errors import UpstreamError
from hybridrag.rag import RerankFallbackChain, RerankRace, rerank_with_fallback, score_sort
from hybridrag.rag.fallback import TIER_NONE, TIER_RACE, TIER_SCORE, TIER_SECONDARY

from stubs import StubReranker, make_chunk


@pytest.mark.anyio
async def test_race_tier_truncates_to_top_k(vector_chunks):
    race = RerankRace(strategies=[StubReranker("fast", result=[9, 8, 7])], deadline_ms=1000)
    chain = RerankFallbackChain(race=race)

    outcome = await chain.rerank_with_tier("query", vector_chunks, top_k=5)

    assert outcome.tier == TIER_RACE
    assert [c.id for c in outcome.chunks] == ["vec_9", "vec_8", "vec_7", "vec_0", "vec_1"]
    assert outcome.chunks[0].rank_meta.winner_strategy == "fast"


@pytest.mark.anyio
async def test_secondary_used_when_race_fails(vector_chunks):
    race = RerankRace(strategies=[StubReranker("broken", error=UpstreamError("down"))], deadline_ms=500)
    secondary = StubReranker("cohere", result=[2, 0, 1])
    chain = RerankFallbackChain(race=race, secondary=secondary)

    outcome = await chain.rerank_with_tier("query", vector_chunks, top_k=3)

    assert outcome.tier == TIER_SECONDARY
    assert [c.id for c in outcome.chunks] == ["vec_2", "vec_0", "vec_1"]
    assert all(c.rank_meta is None for c in outcome.chunks)
    assert secondary.calls == 1


@pytest.mark.anyio
async def test_secondary_used_when_race_times_out(vector_chunks):
    race = RerankRace(strategies=[StubReranker("hanging", result=[0], delay=10.0)], deadline_ms=50)
    chain = RerankFallbackChain(race=race, secondary=StubReranker("cohere", result=[4]))

    outcome = await chain.rerank_with_tier("query", vector_chunks, top_k=2)

    assert outcome.tier == TIER_SECONDARY
    assert [c.id for c in outcome.chunks] == ["vec_4"]


@pytest.mark.anyio
async def test_score_sort_when_everything_fails():
    chunks = [
        make_chunk("low", score=0.1),
        make_chunk("none"),
        make_chunk("high", score=0.9),
    ]
    race = RerankRace(strategies=[StubReranker("broken", error=UpstreamError("down"))], deadline_ms=500)
    chain = RerankFallbackChain(race=race, secondary=StubReranker("cohere", error=UpstreamError("down")))

    outcome = await chain.rerank_with_tier("query", chunks, top_k=5)

    assert outcome.tier == TIER_SCORE
    assert [c.id for c in outcome.chunks] == ["high", "low", "none"]


@pytest.mark.anyio
async def test_single_failing_strategy_without_secondary_uses_score_sort(vector_chunks):
    failing = StubReranker("jina", error=UpstreamError("502"))
    chain = RerankFallbackChain(race=RerankRace(strategies=[failing], deadline_ms=500))

    outcome = await chain.rerank_with_tier("query", list(reversed(vector_chunks)), top_k=3)

    assert outcome.tier == TIER_SCORE
    assert [c.id for c in outcome.chunks] == ["vec_0", "vec_1", "vec_2"]
    assert all(c.rank_meta is None for c in outcome.chunks)
    assert failing.calls == 1


@pytest.mark.anyio
async def test_first_failure_drops_to_secondary_despite_slower_valid_strategy(vector_chunks):
    race = RerankRace(
        strategies=[
            StubReranker("broken", error=UpstreamError("down")),
            StubReranker("slow", result=[9, 8], delay=0.2),
        ],
        deadline_ms=1000,
    )
    chain = RerankFallbackChain(race=race, secondary=StubReranker("cohere", result=[5, 6]))

    outcome = await chain.rerank_with_tier("query", vector_chunks, top_k=2)

    assert outcome.tier == TIER_SECONDARY
    assert [c.id for c in outcome.chunks] == ["vec_5", "vec_6"]


@pytest.mark.anyio
async def test_empty_race_ordering_is_not_a_win(vector_chunks):
    chain = RerankFallbackChain(race=RerankRace(strategies=[StubReranker("empty", result=[])]))

    outcome = await chain.rerank_with_tier("query", list(reversed(vector_chunks)), top_k=2)

    assert outcome.tier == TIER_SCORE
    assert [c.id for c in outcome.chunks] == ["vec_0", "vec_1"]
    assert outcome.chunks[0].rank_meta is None


@pytest.mark.anyio
async def test_unconfigured_chain_goes_straight_to_score_sort(vector_chunks):
    reversed_chunks = list(reversed(vector_chunks))
    outcome = await RerankFallbackChain().rerank_with_tier("query", reversed_chunks, top_k=3)

    assert outcome.tier == TIER_SCORE
    assert [c.id for c in outcome.chunks] == ["vec_0", "vec_1", "vec_2"]


@pytest.mark.anyio
async def test_secondary_with_only_invalid_positions_falls_through(vector_chunks):
    chain = RerankFallbackChain(secondary=StubReranker("cohere", result=[99, -1]))

    outcome = await chain.rerank_with_tier("query", vector_chunks, top_k=2)

    assert outcome.tier == TIER_SCORE


@pytest.mark.anyio
async def test_single_chunk_returned_unchanged():
    strategy = StubReranker("s", result=[0])
    chain = RerankFallbackChain(race=RerankRace(strategies=[strategy]))
    only = make_chunk("only", score=0.2)

    outcome = await chain.rerank_with_tier("query", [only], top_k=5)

    assert outcome.tier == TIER_NONE
    assert outcome.chunks == [only]
    assert strategy.calls == 0


@pytest.mark.anyio
async def test_non_positive_top_k_returns_nothing(vector_chunks):
    assert await RerankFallbackChain().rerank("query", vector_chunks, top_k=0) == []


@pytest.mark.anyio
async def test_functional_form_matches_chain(vector_chunks):
    secondary = StubReranker("cohere", result=[3, 1])
    chunks = await rerank_with_fallback("query", vector_chunks, top_k=2, secondary=secondary)
    assert [c.id for c in chunks] == ["vec_3", "vec_1"]


def test_score_sort_is_stable_for_ties():
    chunks = [make_chunk("a", score=0.5), make_chunk("b", score=0.5), make_chunk("c", score=0.7)]
    assert [c.id for c in score_sort(chunks, 3)] == ["c", "a", "b"]
