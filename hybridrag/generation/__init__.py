"""
Answer generation module for RAG pipeline.

- Context building from reranked chunks ([Source: <id>] headers)
- Answer generation with inline citations
- Citation extraction from model output
"""

from .citations import extract_citations
from .config import GenerationConfig
from .context_builder import build_context, format_chunk, strip_context_prefix
from .generator import AnswerGenerator, GeneratedAnswer
from .prompts import GENERATION_FAILED_ANSWER, INSUFFICIENT_CONTEXT_ANSWER, SYSTEM_PROMPT

__all__ = [
    "build_context",
    "format_chunk",
    "strip_context_prefix",
    "extract_citations",
    "GenerationConfig",
    "SYSTEM_PROMPT",
    "INSUFFICIENT_CONTEXT_ANSWER",
    "GENERATION_FAILED_ANSWER",
    "AnswerGenerator",
    "GeneratedAnswer",
]
