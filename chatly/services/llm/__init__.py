"""LLM service - multi-provider abstraction using LiteLLM."""

from chatly.services.llm.provider import LLMProvider, LLMResponse, get_llm_provider

__all__ = ["LLMProvider", "LLMResponse", "get_llm_provider"]
