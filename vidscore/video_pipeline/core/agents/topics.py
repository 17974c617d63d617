from loguru import logger

from vidscore.providers.base import VideoIntelligenceProvider
from vidscore.utils.error_handler import RetryExecutor
from vidscore.video_pipeline.core.models import TopicSignal, VideoHandle


class TopicTagger:
    """Collects service-side topics and hashtags; used to backfill hashtags."""

    def __init__(self, provider: VideoIntelligenceProvider, executor: RetryExecutor):
        self.provider = provider
        self.executor = executor

    async def __call__(self, handle: VideoHandle) -> TopicSignal:
        try:
            topics = await self.executor.run(
                lambda: self.provider.get_topics(handle.index_id, handle.video_id),
                description="fetch topics",
            )
        except Exception as e:
            logger.warning(f"Topic extraction failed, continuing without topics: {e}")
            return TopicSignal()
        return TopicSignal(topics=tuple(topics))
