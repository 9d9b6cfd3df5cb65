"""
LangChain agents for the research council.

Provides:
- Provider selection (OpenAI, Anthropic, Google) for chat models
- A text-generation agent with a fixed system prompt
"""

from core.langchain.agents import (
    TextGenerator,
    LangChainAgent,
    get_llm_by_provider,
    DEFAULT_MODELS,
)

__all__ = [
    "TextGenerator",
    "LangChainAgent",
    "get_llm_by_provider",
    "DEFAULT_MODELS",
]
