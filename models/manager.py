"""Model manager routing generation calls to configured providers."""

from __future__ import annotations

import logging
from typing import TypeAlias

from config.settings import ModelConfig, SystemConfig

from .providers.base_model_provider import BaseModelProvider
from .providers.providers import ProviderFactory

MessageDict: TypeAlias = dict[str, str]
MessageList: TypeAlias = list[MessageDict]

logger = logging.getLogger(__name__)


class ModelManager:
    """Manages model inference via multiple providers."""

    def __init__(self, system_config: SystemConfig):
        self._system_config = system_config
        self._model_configs: dict[str, ModelConfig] = {}
        self._providers: dict[str, BaseModelProvider] = {}

    def _get_provider(self, provider_name: str) -> BaseModelProvider:
        """Return (and cache) the provider instance identified by name."""
        if provider_name not in self._providers:
            self._providers[provider_name] = ProviderFactory.create_provider(
                provider_name, self._system_config
            )
        return self._providers[provider_name]

    def register_model(self, model_id: str, config: ModelConfig) -> None:
        """Register a model configuration for quick lookup."""
        try:
            provider = self._get_provider(config.provider)
            if not provider.validate_model_config(config):
                msg = f"Invalid model config for provider {config.provider}"
                raise ValueError(msg)
        except ValueError as exc:
            logger.error("Failed to register model %s: %s", model_id, exc)
            raise

        self._model_configs[model_id] = config
        logger.info("Registered model %s: %s (%s)", model_id, config.name, config.provider)

    def is_registered(self, model_id: str) -> bool:
        return model_id in self._model_configs

    async def generate_response(
        self, model_id: str, messages: MessageList, **overrides: object
    ) -> str:
        """Generate a response from the specified model."""
        if model_id not in self._model_configs:
            raise ValueError(f"Model {model_id} not registered")

        config = self._model_configs[model_id]
        provider = self._get_provider(config.provider)

        response = await provider.generate_response(config, messages, **overrides)
        logger.debug(
            "Generated %s chars from %s (%s)", len(response), model_id, config.provider
        )
        return response

    async def close(self) -> None:
        for name, provider in self._providers.items():
            logger.debug("Closing provider %s", name)
            await provider.close()
        self._providers.clear()
