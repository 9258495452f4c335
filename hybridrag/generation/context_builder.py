"""
Context builder for RAG answer generation.

Renders each chunk under a "[Source: <id>] (Origin: ...)" header so the model can
cite it and citations map straight back to chunk ids. Graph chunks carry their
linearized path; vector chunks carry document summary/label plus the chunk text.
"""

from __future__ import annotations

from typing import List, Sequence

from hybridrag.rag.chunk import Chunk

BLOCK_SEPARATOR = "\n\n---\n\n"
DOC_CONTEXT_MARKER = "[DOC_CTX:"
DOC_CONTEXT_SEPARATOR = "---"


def _approx_tokens(text: str) -> int:
    """Rough token count (~4 chars per token for English)."""
    return max(1, len(text) // 4)


def strip_context_prefix(text: str) -> str:
    """
    Drop the ingestion-time priming prefix from a vector chunk.

    Chunks may be stored as "[DOC_CTX: summary]\\n[DOC_LABEL: label]\\n---\\n<text>";
    only the part after the first separator is the original chunk text.
    """
    if DOC_CONTEXT_MARKER in text and DOC_CONTEXT_SEPARATOR in text:
        _prefix, _sep, rest = text.partition(DOC_CONTEXT_SEPARATOR)
        return rest.strip()
    return text


def origin_label(chunk: Chunk) -> str:
    return "Graph-Node" if chunk.is_graph else "Vector-Chunk"


def format_chunk(chunk: Chunk) -> str:
    """Render one chunk as a context block."""
    parts: List[str] = [f"[Source: {chunk.id or 'unknown'}] (Origin: {origin_label(chunk)})"]
    if chunk.is_graph:
        parts.append(f"**Path Context:** {chunk.text}")
    else:
        summary = chunk.metadata.get("doc_summary")
        label = chunk.metadata.get("doc_label")
        if summary:
            parts.append(f"**Doc Summary:** {summary}")
        if label:
            parts.append(f"**Doc Label:** {label}")
        parts.append(f"**Content:** {strip_context_prefix(chunk.text)}")
    return "\n".join(parts)


def build_context(chunks: Sequence[Chunk], max_tokens: int = 6000) -> str:
    """
    Format chunks into a single context string (order preserved).

    Args:
        chunks: Reranked chunks, most relevant first.
        max_tokens: Approximate token budget; trailing blocks are truncated or dropped to fit.
            The first block is always kept.

    Returns:
        Blocks joined by a horizontal-rule separator, or "" for no chunks.
    """
    if not chunks:
        return ""

    blocks: List[str] = []
    used = 0
    for chunk in chunks:
        block = format_chunk(chunk)
        block_tokens = _approx_tokens(block)
        if used + block_tokens > max_tokens and blocks:
            remaining = max_tokens - used - 20
            if remaining > 100:
                blocks.append(block[: remaining * 4] + "...")
            break
        blocks.append(block)
        used += block_tokens

    return BLOCK_SEPARATOR.join(blocks)
