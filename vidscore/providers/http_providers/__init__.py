from .video_intelligence_provider import HttpVideoIntelligenceProvider

__all__ = [
    'HttpVideoIntelligenceProvider',
]
