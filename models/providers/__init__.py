"""Model providers package."""

from .providers import ProviderFactory
from .openai_compatible_provider import OpenAICompatibleProvider
from .base_model_provider import BaseModelProvider

__all__ = [
    "ProviderFactory",
    "OpenAICompatibleProvider",
    "BaseModelProvider",
]
