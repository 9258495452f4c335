"""
Process-wide settings: credentials and endpoints for every external collaborator.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def load_env(env_file: Optional[Path] = None) -> None:
    """Load a .env file from the project root if it exists (existing env wins)."""
    env_file = env_file or PROJECT_ROOT / ".env"
    if env_file.exists():
        load_dotenv(env_file)


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


@dataclass
class Settings:
    """Credentials and endpoints. Empty strings mean "not configured"."""

    # Generation (OpenAI-compatible; Groq by default)
    groq_api_key: str = ""
    llm_base_url: str = ""
    llm_api_key: str = ""
    llm_model: str = ""
    rerank_llm_model: str = ""

    # Rerankers
    jina_api_key: str = ""
    hf_token: str = ""
    cohere_api_key: str = ""
    reranker_model: str = ""

    # Embeddings
    embedding_provider: str = "pinecone"
    embedding_model: str = "llama-text-embed-v2"
    embedding_dimensions: int = 1024
    openai_api_key: str = ""

    # Vector index
    pinecone_api_key: str = ""
    pinecone_index_name: str = ""
    pinecone_index_host: str = ""

    # Graph store
    neo4j_uri: str = ""
    neo4j_username: str = "neo4j"
    neo4j_password: str = ""
    neo4j_database: str = "neo4j"
    # AuraDB OAuth client credentials; tried before username/password
    neo4j_client_id: str = ""
    neo4j_client_secret: str = ""

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (after loading .env)."""
        load_env()
        return cls(
            groq_api_key=_env("GROQ_API_KEY"),
            llm_base_url=_env("LLM_BASE_URL"),
            llm_api_key=_env("LLM_API_KEY"),
            llm_model=_env("LLM_MODEL"),
            rerank_llm_model=_env("RERANK_LLM_MODEL"),
            jina_api_key=_env("JINA_API_KEY"),
            hf_token=_env("HF_TOKEN"),
            cohere_api_key=_env("COHERE_API_KEY"),
            reranker_model=_env("RERANKER_MODEL"),
            embedding_provider=_env("EMBEDDING_PROVIDER", "pinecone").lower(),
            embedding_model=_env("EMBEDDING_MODEL", "llama-text-embed-v2"),
            embedding_dimensions=int(_env("EMBEDDING_DIMENSIONS", "1024") or 1024),
            openai_api_key=_env("OPENAI_API_KEY"),
            pinecone_api_key=_env("PINECONE_API_KEY"),
            pinecone_index_name=_env("PINECONE_INDEX_NAME"),
            pinecone_index_host=_env("PINECONE_INDEX_HOST"),
            neo4j_uri=_env("NEO4J_URI"),
            neo4j_username=_env("NEO4J_USERNAME", "neo4j"),
            neo4j_password=_env("NEO4J_PASSWORD"),
            neo4j_database=_env("NEO4J_DATABASE", "neo4j"),
            neo4j_client_id=_env("NEO4J_CLIENT_ID"),
            neo4j_client_secret=_env("NEO4J_CLIENT_SECRET"),
        )

    @property
    def generation_configured(self) -> bool:
        return bool((self.llm_base_url and self.llm_api_key) or self.groq_api_key)

    @property
    def vector_configured(self) -> bool:
        return bool(self.pinecone_api_key and self.pinecone_index_name)

    @property
    def graph_configured(self) -> bool:
        return bool(self.neo4j_uri and (self.neo4j_password or self.neo4j_oauth_configured))

    @property
    def neo4j_oauth_configured(self) -> bool:
        return bool(self.neo4j_client_id and self.neo4j_client_secret)
