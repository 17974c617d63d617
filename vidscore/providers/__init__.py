"""Provider system for VidScore."""

from .base import (
    LLMProvider,
    VideoIntelligenceProvider
)
from .factory import ProviderFactory, provider_factory
from .openai_providers import OpenAILLMProvider
from .azure_providers import AzureLLMProvider
from .http_providers import HttpVideoIntelligenceProvider

__all__ = [
    # Base classes
    'LLMProvider',
    'VideoIntelligenceProvider',
    # Factory
    'ProviderFactory',
    'provider_factory',
    # Implementations
    'OpenAILLMProvider',
    'AzureLLMProvider',
    'HttpVideoIntelligenceProvider',
]
