"""
Tests for reranker adapters and ranking helpers.
"""

from __future__ import annotations

import json

import httpx
import pytest

from hybridrag.errors import RerankParseError, UpstreamError
from hybridrag.rag.rerankers import (
    CohereReranker,
    HuggingFaceReranker,
    JinaReranker,
    LLMListwiseReranker,
    pad_permutation,
    parse_listwise_ranking,
    unique_valid,
)

from stubs import StubChatClient

TEXTS = ["alpha", "beta", "gamma"]


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_parse_bracketed_ranking():
    assert parse_listwise_ranking("[2] > [1] > [3]", 3) == [1, 0, 2]


def test_parse_bare_numbers():
    assert parse_listwise_ranking("3 > 1", 3) == [2, 0, 1]


def test_parse_ignores_out_of_range_and_duplicates():
    assert parse_listwise_ranking("[9] > [2] > [2] > [0]", 3) == [1, 0, 2]


def test_parse_without_numbers_raises():
    with pytest.raises(RerankParseError):
        parse_listwise_ranking("I cannot rank these.", 3)


def test_unique_valid_and_pad():
    assert unique_valid([2, 2, -1, 5, 0], 3) == [2, 0]
    assert pad_permutation([2], 4) == [2, 0, 1, 3]
    assert pad_permutation([], 2) == [0, 1]


@pytest.mark.anyio
async def test_jina_reads_results_by_index():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"results": [{"index": 2}, {"index": 0}, {"index": 1}]})

    async with _client(handler) as http:
        indices = await JinaReranker(api_key="k", http=http).rerank("q", TEXTS)

    assert indices == [2, 0, 1]
    assert seen["auth"] == "Bearer k"
    assert seen["body"]["documents"] == TEXTS
    assert seen["body"]["top_n"] == 3


@pytest.mark.anyio
async def test_jina_accepts_data_key():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"index": 1}]})

    async with _client(handler) as http:
        assert await JinaReranker(api_key="k", http=http).rerank("q", TEXTS) == [1]


@pytest.mark.anyio
async def test_jina_unmappable_response_raises_parse_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    async with _client(handler) as http:
        with pytest.raises(RerankParseError):
            await JinaReranker(api_key="k", http=http).rerank("q", TEXTS)


@pytest.mark.anyio
async def test_http_error_status_raises_upstream_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="rate limited")

    async with _client(handler) as http:
        with pytest.raises(UpstreamError) as exc_info:
            await JinaReranker(api_key="k", http=http).rerank("q", TEXTS)
    assert "429" in str(exc_info.value)


@pytest.mark.anyio
async def test_hf_sorts_by_score():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["inputs"]["source_sentence"] == "q"
        return httpx.Response(200, json=[0.1, 0.9, 0.5])

    async with _client(handler) as http:
        assert await HuggingFaceReranker(token="t", http=http).rerank("q", TEXTS) == [1, 2, 0]


@pytest.mark.anyio
async def test_hf_rejects_non_list_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "loading"})

    async with _client(handler) as http:
        with pytest.raises(RerankParseError):
            await HuggingFaceReranker(token="t", http=http).rerank("q", TEXTS)


@pytest.mark.anyio
async def test_cohere_returns_scored_subset():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["top_n"] == 2
        return httpx.Response(200, json={"results": [{"index": 1, "relevance_score": 0.8}, {"index": 0}]})

    async with _client(handler) as http:
        reranker = CohereReranker(api_key="c", http=http, top_n=2)
        assert await reranker.rerank("q", TEXTS) == [1, 0]


@pytest.mark.anyio
async def test_listwise_reranker_parses_model_output():
    chat = StubChatClient(answer="[3] > [1] > [2]")

    indices = await LLMListwiseReranker(client=chat).rerank("q", TEXTS)

    assert indices == [2, 0, 1]
    _system, user_prompt, kwargs = chat.calls[0]
    assert "[1] alpha" in user_prompt
    assert kwargs["temperature"] == 0.0
    assert kwargs["max_tokens"] == 100


@pytest.mark.anyio
async def test_listwise_reranker_empty_output_fails():
    with pytest.raises(RerankParseError):
        await LLMListwiseReranker(client=StubChatClient(answer="")).rerank("q", TEXTS)
