"""
Provider Registry — build adapters from config and look them up by role.

Add a new provider kind? Just add an elif. No plugin systems, no metaclasses.
"""

from __future__ import annotations

import logging

import httpx

from tandem.core.config import ProviderConfig, TandemConfig
from tandem.core.errors import UnsupportedModel
from tandem.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)


def create_adapter(
    provider_config: ProviderConfig,
    client: httpx.AsyncClient | None = None,
) -> ProviderAdapter:
    kind = provider_config.kind.lower()
    if kind == "deepseek":
        from tandem.providers.deepseek import DeepSeekAdapter

        return DeepSeekAdapter(provider_config, client)
    elif kind == "anthropic":
        from tandem.providers.anthropic import AnthropicAdapter

        return AnthropicAdapter(provider_config, client)
    elif kind == "openai":
        from tandem.providers.openai_compat import OpenAICompatibleAdapter

        return OpenAICompatibleAdapter(provider_config, client)
    raise ValueError(f"Unknown provider kind: {provider_config.kind}")


class ProviderRegistry:
    """Adapters by name, plus which one plays which pipeline role."""

    def __init__(
        self,
        adapters: dict[str, ProviderAdapter],
        reasoning: str,
        generation: str,
        alternates: tuple[str, ...] = (),
    ):
        for name in (reasoning, generation, *alternates):
            if name not in adapters:
                raise ValueError(f"No adapter registered for provider '{name}'")
        self._adapters = adapters
        self.reasoning_name = reasoning
        self.generation_name = generation
        self.alternates = tuple(alternates)

    @classmethod
    def from_config(cls, cfg: TandemConfig) -> "ProviderRegistry":
        adapters = {p.name: create_adapter(p) for p in cfg.providers}
        return cls(
            adapters,
            reasoning=cfg.pipeline.reasoning,
            generation=cfg.pipeline.generation,
            alternates=cfg.pipeline.alternates,
        )

    def get(self, name: str) -> ProviderAdapter:
        return self._adapters[name]

    def names(self) -> list[str]:
        return list(self._adapters)

    @property
    def reasoning(self) -> ProviderAdapter:
        return self._adapters[self.reasoning_name]

    def generation_for(self, model: str | None) -> tuple[ProviderAdapter, str | None]:
        """Generation adapter for a client model id.

        Returns the adapter and the upstream model to request (None means the
        provider's configured default). No model selects the default
        generation provider.
        """
        if not model:
            return self._adapters[self.generation_name], None

        for name in (self.generation_name, *self.alternates):
            adapter = self._adapters[name]
            if adapter.config.serves(model):
                upstream = None if model in (name, adapter.config.model) else model
                return adapter, upstream

        raise UnsupportedModel(model)

    async def start(self) -> None:
        for adapter in self._adapters.values():
            await adapter.start()
        logger.info(
            "Providers ready (reasoning=%s, generation=%s, alternates=%s)",
            self.reasoning_name,
            self.generation_name,
            list(self.alternates),
        )

    async def stop(self) -> None:
        for adapter in self._adapters.values():
            await adapter.stop()

    async def health(self) -> dict:
        return {name: await a.health_check() for name, a in self._adapters.items()}
