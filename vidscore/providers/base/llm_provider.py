from abc import ABC, abstractmethod
from typing import Dict, Any, AsyncIterator, List

class LLMProvider(ABC):
    """Abstract base class for generative scoring providers."""

    @abstractmethod
    async def chat_completion(self, messages: List[Dict], **kwargs) -> Dict[str, Any]:
        """Generate chat completion response."""
        pass

    @abstractmethod
    def stream_chat_completion(self, messages: List[Dict], **kwargs) -> AsyncIterator[str]:
        """Stream chat completion text chunks as they are generated."""
        pass

    async def close(self):
        """Close the client and cleanup resources. Optional to implement."""
        pass
