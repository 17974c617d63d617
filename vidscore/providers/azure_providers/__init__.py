from .llm_provider import AzureLLMProvider

__all__ = [
    'AzureLLMProvider',
]
