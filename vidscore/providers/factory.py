from typing import Dict, Type
from loguru import logger

from .base import LLMProvider, VideoIntelligenceProvider
from .openai_providers import OpenAILLMProvider
from .azure_providers import AzureLLMProvider
from .http_providers import HttpVideoIntelligenceProvider
from ..exceptions import ConfigurationException
from ..config.settings import VidScoreConfig


class ProviderFactory:
    """Factory class for creating provider instances."""

    _llm_providers: Dict[str, Type[LLMProvider]] = {
        'openai': OpenAILLMProvider,
        'azure': AzureLLMProvider,
    }

    _video_providers: Dict[str, Type[VideoIntelligenceProvider]] = {
        'http': HttpVideoIntelligenceProvider,
    }

    @classmethod
    def create_llm_provider(cls, provider_name: str = None, config: VidScoreConfig = None) -> LLMProvider:
        """
        Create LLM provider instance.

        Args:
            provider_name: Name of the provider (optional, defaults to config)
            config: Loaded configuration (optional, read from environment otherwise)

        Returns:
            LLMProvider instance

        Raises:
            ConfigurationException: If provider is not supported
        """
        config = config or VidScoreConfig()
        if provider_name is None:
            provider_name = config.llm.provider

        if provider_name not in cls._llm_providers:
            raise ConfigurationException(
                f"Unknown LLM provider: {provider_name}. "
                f"Supported providers: {list(cls._llm_providers.keys())}"
            )

        provider_class = cls._llm_providers[provider_name]
        logger.info(f"Creating LLM provider: {provider_name}")
        return provider_class(config.llm.model_dump())

    @classmethod
    def create_video_provider(
        cls, provider_name: str = None, config: VidScoreConfig = None
    ) -> VideoIntelligenceProvider:
        """
        Create video intelligence provider instance.

        Args:
            provider_name: Name of the provider (optional, defaults to config)
            config: Loaded configuration (optional, read from environment otherwise)

        Returns:
            VideoIntelligenceProvider instance

        Raises:
            ConfigurationException: If provider is not supported
        """
        config = config or VidScoreConfig()
        if provider_name is None:
            provider_name = config.video.provider

        if provider_name not in cls._video_providers:
            raise ConfigurationException(
                f"Unknown video intelligence provider: {provider_name}. "
                f"Supported providers: {list(cls._video_providers.keys())}"
            )

        provider_class = cls._video_providers[provider_name]
        logger.info(f"Creating video intelligence provider: {provider_name}")
        return provider_class(config.video.model_dump())

    @classmethod
    def get_supported_providers(cls) -> Dict[str, list]:
        """Get list of supported providers by type."""
        return {
            "llm": list(cls._llm_providers.keys()),
            "video": list(cls._video_providers.keys()),
        }

    @classmethod
    def register_llm_provider(cls, name: str, provider_class: Type[LLMProvider]):
        """Register a new LLM provider."""
        cls._llm_providers[name] = provider_class
        logger.info(f"Registered LLM provider: {name}")

    @classmethod
    def register_video_provider(cls, name: str, provider_class: Type[VideoIntelligenceProvider]):
        """Register a new video intelligence provider."""
        cls._video_providers[name] = provider_class
        logger.info(f"Registered video intelligence provider: {name}")


# Global provider factory instance
provider_factory = ProviderFactory()
