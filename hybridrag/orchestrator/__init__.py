"""
Orchestrator: retrieval, rerank and answer generation for one question.
"""

from .agent import AgentResponse, RAGAgent

__all__ = ["AgentResponse", "RAGAgent"]
