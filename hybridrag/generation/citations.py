"""
Extract [Source: <id>] references from generated text.
"""

from __future__ import annotations

import re
from typing import List

CITATION_RE = re.compile(r"\[Source:\s*([^\]]+)\]")


def extract_citations(answer: str) -> List[str]:
    """
    Return cited source ids in order of first appearance, without duplicates.

    Matching is case-sensitive; surrounding whitespace inside the brackets is trimmed.
    """
    citations: List[str] = []
    seen = set()
    for m in CITATION_RE.finditer(answer or ""):
        source_id = m.group(1).strip()
        if source_id and source_id not in seen:
            seen.add(source_id)
            citations.append(source_id)
    return citations
