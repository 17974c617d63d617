from openai import AsyncAzureOpenAI
from azure.identity.aio import DefaultAzureCredential, get_bearer_token_provider
from vidscore.providers.openai_providers import OpenAILLMProvider
from vidscore.exceptions import ProviderException, ConfigurationException


class AzureLLMProvider(OpenAILLMProvider):
    """Azure OpenAI LLM provider implementation."""

    provider_name = "azure"

    def _initialize_client(self):
        """Initialize Azure OpenAI client."""
        endpoint = self.config.get("endpoint")
        api_version = self.config.get("api_version", "2024-08-01-preview")
        timeout = self.config.get("timeout", 200)
        max_retries = self.config.get("max_retries", 0)

        if not endpoint:
            raise ConfigurationException("Azure OpenAI endpoint is required")
        if not self.config.get("deployment_name"):
            raise ConfigurationException("Azure OpenAI deployment name is required")

        try:
            if self.config.get("use_managed_identity", False):
                self.credential = DefaultAzureCredential()
                token_provider = get_bearer_token_provider(
                    self.credential,
                    "https://cognitiveservices.azure.com/.default"
                )
                return AsyncAzureOpenAI(
                    api_version=api_version,
                    azure_endpoint=endpoint,
                    azure_ad_token_provider=token_provider,
                    max_retries=max_retries,
                    timeout=timeout
                )

            api_key = self.config.get("api_key")
            if not api_key:
                raise ConfigurationException("Azure OpenAI API key is required when managed identity is disabled")

            return AsyncAzureOpenAI(
                api_version=api_version,
                azure_endpoint=endpoint,
                api_key=api_key,
                max_retries=max_retries,
                timeout=timeout
            )
        except ConfigurationException:
            raise
        except Exception as e:
            raise ProviderException(f"Failed to initialize Azure OpenAI client: {e}")

    def _model(self) -> str:
        # Azure routes by deployment, not model name
        return self.config.get("deployment_name")

    async def close(self):
        await super().close()
        credential = getattr(self, "credential", None)
        if credential is not None:
            await credential.close()
