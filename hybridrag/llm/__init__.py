"""
LLM client module for OpenAI-compatible chat APIs (Groq by default).
"""

from .client import ChatClient, OpenAICompatibleClient, create_client

__all__ = ["ChatClient", "OpenAICompatibleClient", "create_client"]
