"""Answer generation settings (one completion per request)."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class GenerationConfig:
    """Completion budget and sampling for the answering model."""

    max_tokens: int = 1024
    temperature: float = 0.3
    # approximate tokens of chunk context passed to the model
    context_max_tokens: int = 6000

    @classmethod
    def from_env(cls) -> "GenerationConfig":
        """Read GENERATION_MAX_TOKENS, GENERATION_TEMPERATURE, GENERATION_CONTEXT_TOKENS."""
        base = cls()
        return cls(
            max_tokens=int(os.getenv("GENERATION_MAX_TOKENS", base.max_tokens)),
            temperature=float(os.getenv("GENERATION_TEMPERATURE", base.temperature)),
            context_max_tokens=int(os.getenv("GENERATION_CONTEXT_TOKENS", base.context_max_tokens)),
        )
