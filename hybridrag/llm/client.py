"""
Async LLM client for OpenAI-compatible APIs (Groq, Z.AI/GLM, DeepSeek, etc.).
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from openai import AsyncOpenAI

from hybridrag.config import Settings
from hybridrag.errors import ConfigurationError, UpstreamError

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_GROQ_MODEL = "llama-3.3-70b-versatile"
DEFAULT_TIMEOUT_SECONDS = 30.0

logger = logging.getLogger(__name__)


class ChatClient(Protocol):
    """Protocol for the generation backend."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> str:
        ...


def _resolve_client_params(
    settings: Settings,
    model_name: Optional[str] = None,
) -> tuple[str, str, str]:
    """Resolve model, api_key, base_url (explicit LLM_* endpoint when set, else Groq)."""
    if settings.llm_base_url and settings.llm_api_key:
        return model_name or settings.llm_model or DEFAULT_GROQ_MODEL, settings.llm_api_key, settings.llm_base_url
    model = model_name or settings.llm_model or DEFAULT_GROQ_MODEL
    return model, settings.groq_api_key, GROQ_BASE_URL


class OpenAICompatibleClient:
    """Chat client over the async OpenAI SDK. One call per request, no retries."""

    def __init__(
        self,
        api_key: str,
        model_name: str = DEFAULT_GROQ_MODEL,
        base_url: str = GROQ_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if not api_key:
            raise ConfigurationError(
                "API key required. Set GROQ_API_KEY (or LLM_BASE_URL + LLM_API_KEY)."
            )
        self.model_name = model_name
        self.base_url = base_url
        self.client = AsyncOpenAI(base_url=base_url, api_key=api_key, timeout=timeout, max_retries=0)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> str:
        """Single chat completion; returns stripped content ("" when the model returns nothing)."""
        create_kw: dict = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        # Z.AI: disable thinking so the model returns directly in content
        if "z.ai" in self.base_url.lower():
            create_kw["extra_body"] = {"thinking": {"type": "disabled"}}

        try:
            response = await self.client.chat.completions.create(**create_kw)
        except Exception as e:
            raise UpstreamError(f"Chat completion failed ({self.model_name}): {e}") from e

        if not response.choices:
            logger.warning("Empty response from %s", self.model_name)
            return ""
        msg = response.choices[0].message
        text = msg.content or ""
        if not text.strip() and getattr(msg, "reasoning_content", None):
            text = msg.reasoning_content or ""
        if not text.strip():
            logger.warning(
                "Empty content from %s (finish_reason=%s)",
                self.model_name,
                getattr(response.choices[0], "finish_reason", "?"),
            )
        return text.strip()

    async def close(self) -> None:
        await self.client.close()


def create_client(
    settings: Optional[Settings] = None,
    model_name: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> OpenAICompatibleClient:
    """Create an OpenAI-compatible client from settings (raises ConfigurationError without a key)."""
    settings = settings or Settings.from_env()
    model, api_key, base_url = _resolve_client_params(settings, model_name=model_name)
    return OpenAICompatibleClient(api_key=api_key, model_name=model, base_url=base_url, timeout=timeout)
