"""
Merge vector and graph results and drop duplicates (first occurrence wins).
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Set

from .chunk import Chunk


def hash_text(text: str) -> str:
    """32-bit rolling hash of text (h * 31 + c, signed wrap-around)."""
    h = 0
    for ch in text:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return str(h)


def dedup_key(chunk: Chunk) -> str:
    """Identity key: the chunk id when present, else a hash of its text."""
    return chunk.id or f"#{hash_text(chunk.text)}"


def dedup(chunks: Iterable[Chunk]) -> List[Chunk]:
    """Keep the first chunk for each key, preserving first-seen order."""
    seen: Set[str] = set()
    out: List[Chunk] = []
    for chunk in chunks:
        key = dedup_key(chunk)
        if key in seen:
            continue
        seen.add(key)
        out.append(chunk)
    return out


def merge_branches(vector_chunks: Sequence[Chunk], graph_chunks: Sequence[Chunk]) -> List[Chunk]:
    """Concatenate vector-first, then deduplicate."""
    return dedup([*vector_chunks, *graph_chunks])
