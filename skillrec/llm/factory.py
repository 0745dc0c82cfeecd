"""Provider factory: builds vendor providers and picks the one to use."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

from skillrec.constants import DEFAULT_LLM_REQUEST_TIMEOUT_SECONDS
from skillrec.llm._base import LLMProvider, ProviderConfig, ProviderType
from skillrec.llm.anthropic import AnthropicProvider
from skillrec.llm.cohere import CohereProvider
from skillrec.llm.gemini import GeminiProvider
from skillrec.llm.openai import OpenAIProvider

if TYPE_CHECKING:
    from collections.abc import Iterable

    from skillrec.config import EngineSettings
    from skillrec.llm.cache import ResponseCache

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[ProviderType, type[LLMProvider]] = {
    ProviderType.OPENAI: OpenAIProvider,
    ProviderType.GEMINI: GeminiProvider,
    ProviderType.ANTHROPIC: AnthropicProvider,
    ProviderType.COHERE: CohereProvider,
}


def parse_provider_type(name: str, fallback: ProviderType = ProviderType.GEMINI) -> ProviderType:
    try:
        return ProviderType(name.strip().lower())
    except ValueError:
        logger.warning("unknown LLM provider %r, using %s", name, fallback.value)
        return fallback


class ProviderFactory:
    """Owns one provider instance per vendor and resolves the default."""

    def __init__(
        self,
        configs: Iterable[ProviderConfig] = (),
        default: ProviderType = ProviderType.GEMINI,
        cache: ResponseCache | None = None,
        timeout: float = DEFAULT_LLM_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._providers: dict[ProviderType, LLMProvider] = {}
        self._default = default
        self._cache = cache
        self._timeout = timeout
        for config in configs:
            self.register(config)

    @classmethod
    def from_settings(cls, settings: EngineSettings, cache: ResponseCache | None = None) -> ProviderFactory:
        configs = [
            ProviderConfig(
                type=ProviderType(name),
                api_key=ps.api_key,
                model=ps.model,
                temperature=ps.temperature,
                enabled=ps.enabled,
            )
            for name, ps in settings.providers.items()
        ]
        return cls(
            configs,
            default=parse_provider_type(settings.default_provider),
            cache=cache,
            timeout=settings.llm_request_timeout,
        )

    @property
    def cache(self) -> ResponseCache | None:
        return self._cache

    def register(self, config: ProviderConfig) -> LLMProvider:
        """Create (or replace) the provider for ``config.type``."""
        provider = PROVIDER_CLASSES[config.type](config, cache=self._cache, timeout=self._timeout)
        return self.add(provider)

    def add(self, provider: LLMProvider) -> LLMProvider:
        """Install an already built provider under its own type."""
        self._providers[provider.provider_type] = provider
        return provider

    def get(self, provider_type: ProviderType) -> LLMProvider | None:
        return self._providers.get(provider_type)

    def available_providers(self) -> list[str]:
        """Names of providers that are enabled and have credentials."""
        return [p.name for p in self._providers.values() if p.is_enabled()]

    def any_enabled(self) -> bool:
        return any(p.is_enabled() for p in self._providers.values())

    def set_default(self, provider_type: ProviderType) -> None:
        self._default = provider_type

    def default_provider(self) -> LLMProvider:
        """The configured default if usable, else the first enabled provider.

        When nothing is enabled the (disabled) default is returned so callers
        always get an object whose ``send`` reports ``DISABLED``.
        """
        configured = self._providers.get(self._default)
        if configured is not None and configured.is_enabled():
            return configured
        for provider in self._providers.values():
            if provider.is_enabled():
                logger.warning(
                    "default LLM provider %s unavailable, falling back to %s",
                    self._default.value,
                    provider.name,
                )
                return provider
        if configured is not None:
            return configured
        return self.register(ProviderConfig(type=self._default))

    async def update_provider_config(
        self,
        provider_type: ProviderType,
        *,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        enabled: bool | None = None,
    ) -> LLMProvider:
        """Change a provider's settings in place. A model change drops its cached responses."""
        provider = self._providers.get(provider_type) or self.register(ProviderConfig(type=provider_type))
        old_model = provider.model
        changes: dict[str, Any] = {
            k: v
            for k, v in {"api_key": api_key, "model": model, "temperature": temperature, "enabled": enabled}.items()
            if v is not None
        }
        provider.update_config(dataclasses.replace(provider.config, **changes))
        if provider.model != old_model and self._cache is not None:
            await self._cache.clear_provider(provider.name)
        logger.info(
            "updated %s provider config model=%s enabled=%s", provider.name, provider.model, provider.is_enabled()
        )
        return provider

    def cache_stats(self) -> dict[str, Any]:
        return self._cache.stats() if self._cache is not None else {"enabled": False}

    async def clear_cache(self, provider_type: ProviderType | None = None) -> None:
        if self._cache is None:
            return
        if provider_type is None:
            await self._cache.clear()
        else:
            await self._cache.clear_provider(provider_type.value)

    def reset_cache_metrics(self) -> None:
        if self._cache is not None:
            self._cache.reset_metrics()

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()
