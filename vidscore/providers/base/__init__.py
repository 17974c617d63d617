from .llm_provider import LLMProvider
from .video_intelligence_provider import VideoIntelligenceProvider

__all__ = [
    'LLMProvider',
    'VideoIntelligenceProvider',
]
