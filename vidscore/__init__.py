"""
VidScore: pre-publication scoring of short-form videos.
"""

from .video_pipeline.pipeline import AnalysisPipeline
from .video_pipeline.core.models import ProgressEvent, ScoreReport, ScoringMetric
from .utils.validation import AnalyzeVideoRequest
from .providers.base import LLMProvider, VideoIntelligenceProvider
from .config.settings import VidScoreConfig

__all__ = [
    "AnalysisPipeline",
    "AnalyzeVideoRequest",
    "ProgressEvent",
    "ScoreReport",
    "ScoringMetric",
    "LLMProvider",
    "VideoIntelligenceProvider",
    "VidScoreConfig",
]
