"""
RAG (Retrieval-Augmented Generation) module.

Provides the retrieval side of the pipeline:
- Query embedding
- Vector branch (namespaced nearest neighbours)
- Graph branch (document-root path context)
- Merge & dedup
- Reranker race with a fallback chain
"""

from .chunk import Chunk, Origin, RankMeta, RerankRaceResult
from .config import RAGConfig
from .embeddings import Embedder, OpenAIEmbedder, PineconeInferenceEmbedder, SentenceTransformerEmbedder
from .fallback import RerankFallbackChain, RerankOutcome, rerank_with_fallback, score_sort
from .graph import GraphStore, Neo4jGraphStore, graph_search
from .merge import dedup, hash_text, merge_branches
from .race import RerankRace
from .rerankers import Reranker, pad_permutation, parse_listwise_ranking
from .retriever import HybridRetriever, RetrievalResult
from .vector import InMemoryVectorIndex, PineconeVectorIndex, VectorIndex, vector_search

__all__ = [
    "Chunk",
    "Origin",
    "RankMeta",
    "RerankRaceResult",
    "RAGConfig",
    "Embedder",
    "OpenAIEmbedder",
    "PineconeInferenceEmbedder",
    "SentenceTransformerEmbedder",
    "RerankFallbackChain",
    "RerankOutcome",
    "rerank_with_fallback",
    "score_sort",
    "GraphStore",
    "Neo4jGraphStore",
    "graph_search",
    "dedup",
    "hash_text",
    "merge_branches",
    "RerankRace",
    "Reranker",
    "pad_permutation",
    "parse_listwise_ranking",
    "HybridRetriever",
    "RetrievalResult",
    "InMemoryVectorIndex",
    "PineconeVectorIndex",
    "VectorIndex",
    "vector_search",
]
