from .settings import (
    LLMConfig,
    VideoIntelligenceConfig,
    PipelineConfig,
    LoggingConfig,
    VidScoreConfig,
)

__all__ = [
    "LLMConfig",
    "VideoIntelligenceConfig",
    "PipelineConfig",
    "LoggingConfig",
    "VidScoreConfig",
]
