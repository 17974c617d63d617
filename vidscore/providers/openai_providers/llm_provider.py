from vidscore.providers.base import LLMProvider
from loguru import logger
from vidscore.exceptions import ProviderException, ConfigurationException
from typing import Dict, Any, AsyncIterator, List
from vidscore.utils.error_handler import ErrorHandler
from openai import AsyncOpenAI


class OpenAILLMProvider(LLMProvider):
    """OpenAI LLM provider implementation."""

    provider_name = "openai"

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.client = self._initialize_client()

    def _initialize_client(self):
        """Initialize OpenAI client."""
        api_key = self.config.get("api_key")
        if not api_key:
            raise ConfigurationException("OpenAI API key is required")

        try:
            return AsyncOpenAI(
                api_key=api_key,
                timeout=self.config.get("timeout", 200),
                max_retries=self.config.get("max_retries", 0)
            )
        except Exception as e:
            raise ProviderException(f"Failed to initialize OpenAI client: {e}")

    def _model(self) -> str:
        return self.config.get("model_name", "gpt-4o")

    def _completion_kwargs(self, messages: List[Dict], **kwargs) -> Dict[str, Any]:
        completion_kwargs = {
            "model": self._model(),
            "messages": messages,
            "temperature": kwargs.pop("temperature", self.config.get("temperature", 0.0)),
            "max_tokens": kwargs.pop("max_tokens", self.config.get("max_tokens", 4000)),
        }
        response_format = kwargs.pop("response_format", None)
        if response_format:
            completion_kwargs["response_format"] = response_format
        completion_kwargs.update(kwargs)
        return completion_kwargs

    async def chat_completion(self, messages: List[Dict], **kwargs) -> Dict[str, Any]:
        """Generate chat completion."""
        try:
            response = await self.client.chat.completions.create(
                **self._completion_kwargs(messages, **kwargs)
            )
            return {
                "content": response.choices[0].message.content,
                "usage": response.usage.model_dump() if response.usage else None,
                "model": response.model,
                "finish_reason": response.choices[0].finish_reason
            }
        except Exception as e:
            raise ErrorHandler.handle_provider_error(e, self.provider_name) from e

    async def stream_chat_completion(self, messages: List[Dict], **kwargs) -> AsyncIterator[str]:
        """Yield text deltas of a streamed chat completion."""
        try:
            stream = await self.client.chat.completions.create(
                stream=True, **self._completion_kwargs(messages, **kwargs)
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except Exception as e:
            raise ErrorHandler.handle_provider_error(e, self.provider_name) from e

    async def close(self):
        """Close the LLM client and cleanup resources."""
        if self.client:
            logger.info(f"Closing {self.provider_name} LLM client")
            await self.client.close()
