"""Provider registry for the gateway."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from app.core.config import Settings
from app.core.errors import GatewayError
from app.schemas import ProviderId

from .base import ProviderAdapter, ProviderReply
from .gemini import GeminiAdapter
from .openai_compat import OpenAICompatibleAdapter, OpenRouterAdapter, ZAIAdapter

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Adapters kept in the order they should be attempted."""

    def __init__(self, adapters: Iterable[ProviderAdapter] = ()) -> None:
        self._providers: Dict[str, ProviderAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> None:
        self._providers[adapter.name] = adapter

    def get(self, name: str) -> Optional[ProviderAdapter]:
        return self._providers.get(name.lower())

    def names(self) -> List[str]:
        return list(self._providers.keys())

    def ordered(self) -> List[ProviderAdapter]:
        return list(self._providers.values())

    def index_of(self, name: Optional[str]) -> Optional[int]:
        if not name:
            return None
        try:
            return self.names().index(name.lower())
        except ValueError:
            return None

    def __contains__(self, item: str) -> bool:
        return item.lower() in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    async def health(self) -> Dict[str, bool]:
        return {name: await adapter.health_check() for name, adapter in self._providers.items()}

    async def stats(self) -> Dict[str, Dict[str, Any]]:
        report: Dict[str, Dict[str, Any]] = {}
        for name, adapter in self._providers.items():
            try:
                report[name] = await adapter.stats()
            except GatewayError as exc:
                logger.warning("Stats unavailable for %s: %s", name, exc.message)
                report[name] = {"provider": name, "error": exc.message, "isHealthy": False}
        return report

    async def aclose(self) -> None:
        for adapter in self._providers.values():
            await adapter.aclose()


def build_registry(settings: Settings) -> ProviderRegistry:
    """Create adapters for every provider with a key, in configured priority order."""

    common = {
        "timeout": settings.provider_timeout_seconds,
        "temperature": settings.temperature,
        "max_tokens": settings.max_output_tokens,
        "default_retry_after": settings.default_retry_after_seconds,
    }
    factories = {
        ProviderId.OPENROUTER.value: lambda: OpenRouterAdapter(
            settings.openrouter_api_key,
            settings.openrouter_model,
            settings.openrouter_base_url,
            **common,
        ),
        ProviderId.GEMINI.value: lambda: GeminiAdapter(
            settings.gemini_api_key,
            settings.gemini_model,
            settings.gemini_base_url,
            **common,
        ),
        ProviderId.ZAI.value: lambda: ZAIAdapter(
            settings.zai_api_key,
            settings.zai_model,
            settings.zai_base_url,
            **common,
        ),
    }
    keys = {
        ProviderId.OPENROUTER.value: settings.openrouter_api_key,
        ProviderId.GEMINI.value: settings.gemini_api_key,
        ProviderId.ZAI.value: settings.zai_api_key,
    }

    registry = ProviderRegistry()
    for name in settings.provider_priority:
        name = name.lower()
        if name not in factories:
            logger.warning("Ignoring unknown provider %r in provider_priority", name)
            continue
        if name in registry:
            continue
        if not keys[name]:
            logger.info("Provider %s has no API key configured; skipping", name)
            continue
        registry.register(factories[name]())
    return registry


__all__ = [
    "GeminiAdapter",
    "OpenAICompatibleAdapter",
    "OpenRouterAdapter",
    "ProviderAdapter",
    "ProviderRegistry",
    "ProviderReply",
    "ZAIAdapter",
    "build_registry",
]
