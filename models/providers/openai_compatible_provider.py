import logging
import os
from typing import TYPE_CHECKING

from openai import AsyncOpenAI

from .base_model_provider import BaseModelProvider

if TYPE_CHECKING:
    from openai.types.chat import ChatCompletion
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(BaseModelProvider):
    """Provider for any endpoint speaking the OpenAI chat completions API."""

    def __init__(self, system_config: "SystemConfig"):
        super().__init__(system_config)
        provider_config = system_config.provider

        api_key = provider_config.api_key or os.getenv("ARENA_LLM_API_KEY")
        if not api_key:
            logger.warning(
                "No model API key found. Set ARENA_LLM_API_KEY or configure system.provider.api_key."
            )
            self._client = None
        else:
            self._client = AsyncOpenAI(
                base_url=provider_config.base_url,
                api_key=api_key,
                timeout=provider_config.timeout,
                max_retries=provider_config.max_retries,
            )

    @property
    def provider_name(self) -> str:
        return "openai_compatible"

    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        """Generate a chat completion; an empty reply is an error."""
        if not self._client:
            raise RuntimeError("Model client not initialized - check API key")

        params = {
            "model": model_config.name,
            "messages": messages,
            "max_tokens": overrides.get("max_tokens", model_config.max_tokens),
            "temperature": overrides.get("temperature", model_config.temperature),
        }

        try:
            response: "ChatCompletion" = await self._client.chat.completions.create(**params)
        except Exception as e:
            logger.error(f"Generation failed for {model_config.name}: {e}")
            raise

        content = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not content:
            raise RuntimeError(f"Model {model_config.name} returned an empty response")

        logger.debug(f"Generated {len(content)} chars from {model_config.name}")
        return content

    def validate_model_config(self, model_config: "ModelConfig") -> bool:
        return model_config.provider == "openai_compatible"
