"""Vendor LLM providers behind one ``send`` interface, with response caching."""

from skillrec.llm._base import LLMErrorCode, LLMProvider, LLMResponse, ProviderConfig, ProviderType
from skillrec.llm.cache import InMemoryCacheBackend, RedisCacheBackend, ResponseCache, cache_key, normalize_prompt
from skillrec.llm.factory import ProviderFactory

__all__ = [
    "InMemoryCacheBackend",
    "LLMErrorCode",
    "LLMProvider",
    "LLMResponse",
    "ProviderConfig",
    "ProviderFactory",
    "ProviderType",
    "RedisCacheBackend",
    "ResponseCache",
    "cache_key",
    "normalize_prompt",
]
