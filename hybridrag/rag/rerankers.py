"""
Reranker backends adapted to one contract: rerank(query, texts) -> ordered input positions.

Each adapter owns its vendor's request/response format. Failures raise
UpstreamError (transport/HTTP) or RerankParseError (unusable response).
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

import httpx
from sentence_transformers import CrossEncoder

from hybridrag.config import Settings
from hybridrag.errors import RerankParseError, UpstreamError
from hybridrag.llm.client import ChatClient, create_client

logger = logging.getLogger(__name__)

JINA_RERANK_URL = "https://api.jina.ai/v1/rerank"
JINA_MODEL = "jina-reranker-v1-base-en"
HF_RERANK_URL = "https://api-inference.huggingface.co/models/BAAI/bge-reranker-v2-m3"
COHERE_RERANK_URL = "https://api.cohere.com/v2/rerank"
COHERE_MODEL = "rerank-english-v3.0"
LISTWISE_MODEL = "llama-3.1-8b-instant"
DEFAULT_CROSS_ENCODER = "cross-encoder/ms-marco-MiniLM-L-6-v2"

_BRACKET_RE = re.compile(r"\[(\d+)\]")
_NUMBER_RE = re.compile(r"\d+")


class Reranker(Protocol):
    """A reranking backend."""

    name: str

    async def rerank(self, query: str, texts: Sequence[str]) -> List[int]:
        """Return input positions, most relevant first (may be a subset)."""
        ...


def unique_valid(indices: Iterable[int], n: int) -> List[int]:
    """Drop out-of-range and repeated positions, keeping first occurrences."""
    seen = set()
    out: List[int] = []
    for idx in indices:
        if 0 <= idx < n and idx not in seen:
            seen.add(idx)
            out.append(idx)
    return out


def pad_permutation(indices: Iterable[int], n: int) -> List[int]:
    """
    Complete a partial ranking into a permutation of range(n).

    Positions the ranking does not mention are appended in original order.
    This treats a partially parsed ranking as usable rather than as a failure.
    """
    ordered = unique_valid(indices, n)
    seen = set(ordered)
    ordered.extend(i for i in range(n) if i not in seen)
    return ordered


def parse_listwise_ranking(content: str, n: int) -> List[int]:
    """
    Parse an LLM ranking like "[2] > [1] > [3]" (or "2 > 1 > 3") into 0-based positions.

    Raises RerankParseError when no valid position can be read.
    """
    tokens = _BRACKET_RE.findall(content)
    if not tokens:
        tokens = _NUMBER_RE.findall(content)
    parsed = unique_valid((int(t) - 1 for t in tokens), n)
    if not parsed:
        raise RerankParseError(f"Failed to parse valid indices from response: {content[:100]!r}")
    return pad_permutation(parsed, n)


async def _post_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    vendor: str,
) -> Any:
    try:
        response = await client.post(url, headers=headers, json=payload)
    except httpx.HTTPError as e:
        raise UpstreamError(f"{vendor} request failed: {e}") from e
    if response.status_code >= 400:
        raise UpstreamError(f"{vendor} API error: {response.status_code} - {response.text[:200]}")
    try:
        return response.json()
    except ValueError as e:
        raise RerankParseError(f"{vendor} returned invalid JSON") from e


def _indices_from_results(items: Any, n: int) -> List[int]:
    """Read the `index` field of each ranked result item."""
    if not isinstance(items, list):
        return []
    raw: List[int] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        idx = item.get("index")
        if isinstance(idx, int):
            raw.append(idx)
    return unique_valid(raw, n)


@dataclass
class JinaReranker:
    """Jina rerank API."""

    api_key: str
    http: httpx.AsyncClient
    model: str = JINA_MODEL
    url: str = JINA_RERANK_URL
    name: str = "jina"

    async def rerank(self, query: str, texts: Sequence[str]) -> List[int]:
        data = await _post_json(
            self.http,
            self.url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            payload={
                "model": self.model,
                "query": query,
                "documents": list(texts),
                "top_n": len(texts),
            },
            vendor="Jina",
        )
        items = None
        if isinstance(data, dict):
            items = data.get("results") if data.get("results") is not None else data.get("data")
        indices = _indices_from_results(items, len(texts))
        if not indices:
            keys = list(data.keys()) if isinstance(data, dict) else type(data).__name__
            raise RerankParseError(f"Jina reranker: could not map results (response keys: {keys})")
        return indices


@dataclass
class HuggingFaceReranker:
    """BAAI/bge-reranker-v2-m3 on the Hugging Face inference API (flat list of scores)."""

    token: str
    http: httpx.AsyncClient
    url: str = HF_RERANK_URL
    name: str = "baai-hf"

    async def rerank(self, query: str, texts: Sequence[str]) -> List[int]:
        scores = await _post_json(
            self.http,
            self.url,
            headers={"Authorization": f"Bearer {self.token}"},
            payload={"inputs": {"source_sentence": query, "sentences": list(texts)}},
            vendor="HF",
        )
        if not isinstance(scores, list) or not scores:
            raise RerankParseError("HF API returned invalid format: expected array of scores")
        if len(scores) != len(texts):
            logger.warning("HF reranker: score count mismatch (%d scores, %d documents)", len(scores), len(texts))
        try:
            indexed = [(i, float(s)) for i, s in enumerate(scores[: len(texts)])]
        except (TypeError, ValueError) as e:
            raise RerankParseError("HF API returned non-numeric scores") from e
        indexed.sort(key=lambda x: x[1], reverse=True)
        return [i for i, _ in indexed]


LISTWISE_SYSTEM_PROMPT = (
    "You are a high-speed ranking assistant. Output ONLY the sorted list of IDs in order "
    "of relevance (most relevant first). Format: [1] > [2] > [3] or just: 1 > 2 > 3"
)


@dataclass
class LLMListwiseReranker:
    """Listwise ranking by a fast chat model (Groq Llama by default)."""

    client: ChatClient
    name: str = "groq-llama"
    max_tokens: int = 100

    async def rerank(self, query: str, texts: Sequence[str]) -> List[int]:
        numbered = "\n\n".join(f"[{i + 1}] {t}" for i, t in enumerate(texts))
        user_prompt = (
            f'Rank these passages by relevance to: "{query}"\n\n'
            f"{numbered}\n\n"
            "Output the ranked order of IDs (most relevant first). Format: [1] > [2] > [3] or 1 > 2 > 3"
        )
        content = await self.client.complete(
            LISTWISE_SYSTEM_PROMPT,
            user_prompt,
            max_tokens=self.max_tokens,
            temperature=0.0,
        )
        if not content:
            raise RerankParseError("Listwise reranker returned empty content")
        return parse_listwise_ranking(content, len(texts))


@dataclass
class CrossEncoderReranker:
    """Local cross-encoder; scoring runs in a worker thread."""

    model_name: str = DEFAULT_CROSS_ENCODER
    max_chars: int = 512
    name: str = "cross-encoder"
    _model: CrossEncoder = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Initialize the cross-encoder model."""
        self._model = CrossEncoder(self.model_name)

    def _score(self, query: str, texts: Sequence[str]) -> List[float]:
        pairs = [(query, t[: self.max_chars].replace("\n", " ")) for t in texts]
        return [float(s) for s in self._model.predict(pairs, batch_size=16)]

    async def rerank(self, query: str, texts: Sequence[str]) -> List[int]:
        try:
            scores = await asyncio.to_thread(self._score, query, texts)
        except Exception as e:
            raise UpstreamError(f"Cross-encoder scoring failed: {e}") from e
        return sorted(range(len(scores)), key=lambda i: scores[i], reverse=True)


@dataclass
class CohereReranker:
    """Cohere rerank API; returns the top_n positions it scores."""

    api_key: str
    http: httpx.AsyncClient
    model: str = COHERE_MODEL
    url: str = COHERE_RERANK_URL
    top_n: Optional[int] = None
    name: str = "cohere"

    async def rerank(self, query: str, texts: Sequence[str]) -> List[int]:
        data = await _post_json(
            self.http,
            self.url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            payload={
                "model": self.model,
                "query": query,
                "documents": list(texts),
                "top_n": min(self.top_n or len(texts), len(texts)),
            },
            vendor="Cohere",
        )
        items = data.get("results") if isinstance(data, dict) else None
        indices = _indices_from_results(items, len(texts))
        if not indices:
            raise RerankParseError("Cohere reranker returned no usable results")
        return indices


def build_race_strategies(settings: Settings, http: httpx.AsyncClient) -> List[Reranker]:
    """Instantiate every race strategy whose credentials are configured."""
    strategies: List[Reranker] = []
    if settings.jina_api_key:
        strategies.append(JinaReranker(api_key=settings.jina_api_key, http=http))
    if settings.hf_token:
        strategies.append(HuggingFaceReranker(token=settings.hf_token, http=http))
    if settings.groq_api_key:
        model = settings.rerank_llm_model or LISTWISE_MODEL
        strategies.append(
            LLMListwiseReranker(client=create_client(Settings(groq_api_key=settings.groq_api_key), model_name=model, timeout=5.0))
        )
    if settings.reranker_model:
        strategies.append(CrossEncoderReranker(model_name=settings.reranker_model))
    return strategies


def build_secondary_reranker(settings: Settings, http: httpx.AsyncClient) -> Optional[Reranker]:
    """The single Tier 2 reranker (Cohere), if configured."""
    if settings.cohere_api_key:
        return CohereReranker(api_key=settings.cohere_api_key, http=http)
    return None
