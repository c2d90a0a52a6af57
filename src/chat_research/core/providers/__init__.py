"""Concrete LLM provider implementations."""

from chat_research.core.providers.openai_compat import OpenAICompatibleProvider

__all__ = ["OpenAICompatibleProvider"]
