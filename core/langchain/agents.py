"""
LangChain-backed text generation agents.

Every agent in the research council exposes the same narrow capability:
``await agent.generate(prompt) -> str``. Provider selection, API keys and
model defaults live here.
"""

import os
import logging
from abc import ABC, abstractmethod
from typing import Any, Literal, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from core.pipeline.errors import AgentUnavailableError

logger = logging.getLogger(__name__)

Provider = Literal["openai", "anthropic", "google"]

DEFAULT_MODELS = {
    "openai": "gpt-4o",
    "anthropic": "claude-3-5-sonnet-20241022",
    "google": "gemini-2.0-flash",
}

EMPTY_RESPONSE = "No response generated"


class TextGenerator(ABC):
    """Text in, text out. Implementations may raise on provider failure."""

    name: str = "agent"

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        ...


def _api_key_for(provider: str, api_key: Optional[str]) -> Optional[str]:
    if api_key:
        return api_key
    if provider == "openai":
        return os.getenv("OPENAI_API_KEY")
    if provider == "anthropic":
        return os.getenv("ANTHROPIC_API_KEY")
    if provider == "google":
        return os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    return None


def get_llm_by_provider(
    provider: Provider,
    model: Optional[str] = None,
    temperature: float = 0.4,
    max_tokens: int = 2000,
    api_key: Optional[str] = None,
):
    """Get LLM instance by provider."""
    key = _api_key_for(provider, api_key)
    if provider not in DEFAULT_MODELS:
        raise ValueError(f"Unknown provider: {provider}")
    if not key:
        raise AgentUnavailableError(provider, "API key not set")

    if provider == "openai":
        from langchain_openai import ChatOpenAI
        return ChatOpenAI(
            model=model or DEFAULT_MODELS["openai"],
            temperature=temperature,
            api_key=key,
            max_tokens=max_tokens,
        )
    elif provider == "anthropic":
        from langchain_anthropic import ChatAnthropic
        return ChatAnthropic(
            model=model or DEFAULT_MODELS["anthropic"],
            temperature=temperature,
            api_key=key,
            max_tokens=max_tokens,
        )
    else:
        from langchain_google_genai import ChatGoogleGenerativeAI
        return ChatGoogleGenerativeAI(
            model=model or DEFAULT_MODELS["google"],
            temperature=temperature,
            google_api_key=key,
            max_output_tokens=max_tokens,
        )


def _content_text(content: Any) -> str:
    """Flatten a chat message's content (str or list of parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return str(content or "")


class LangChainAgent(TextGenerator):
    """
    A council member backed by a LangChain chat model.

    The model is created on first use so a roster can be assembled
    before any network client exists.
    """

    def __init__(
        self,
        name: str,
        provider: Provider,
        system_prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.4,
        max_tokens: int = 2000,
        api_key: Optional[str] = None,
        llm: Any = None,
    ):
        self.name = name
        self.provider = provider
        self.system_prompt = system_prompt
        self.model = model or DEFAULT_MODELS.get(provider)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._api_key = api_key
        self._llm = llm

    @property
    def llm(self):
        if self._llm is None:
            self._llm = get_llm_by_provider(
                self.provider,
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                api_key=self._api_key,
            )
        return self._llm

    async def generate(self, prompt: str) -> str:
        messages = [
            SystemMessage(content=self.system_prompt),
            HumanMessage(content=prompt),
        ]
        logger.debug(f"{self.name} -> {self.provider}/{self.model} ({len(prompt)} chars)")
        response = await self.llm.ainvoke(messages)
        text = _content_text(response.content).strip()
        return text or EMPTY_RESPONSE

    def __repr__(self) -> str:
        return f"LangChainAgent({self.name!r}, {self.provider}/{self.model})"
