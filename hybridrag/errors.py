"""
Error taxonomy shared by the retrieval and generation layers.
"""

from __future__ import annotations


class HybridRAGError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(HybridRAGError):
    """A required credential or setting is missing. Raised before any network call."""


class UpstreamError(HybridRAGError):
    """A collaborator call (embedding, index, graph, reranker, LLM) failed."""


class RerankParseError(UpstreamError):
    """A reranker response could not be turned into a valid ordering."""


class RerankRaceError(UpstreamError):
    """Every racing strategy failed."""


class RerankTimeoutError(RerankRaceError, TimeoutError):
    """The race deadline elapsed before any strategy produced a valid ordering."""
