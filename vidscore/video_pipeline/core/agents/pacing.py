from typing import List, Optional

from loguru import logger

from vidscore.providers.base import VideoIntelligenceProvider
from vidscore.utils.error_handler import RetryExecutor
from vidscore.video_pipeline.core.models import PacingSignal, TranscriptSegment, VideoHandle


def count_dead_air(segments: List[TranscriptSegment], threshold: float = 2.5) -> int:
    """Number of gaps between consecutive segments longer than ``threshold`` seconds."""
    ordered = sorted(segments, key=lambda s: s.start)
    return sum(
        1
        for previous, current in zip(ordered, ordered[1:])
        if current.start - previous.end > threshold
    )


def words_per_minute(segments: List[TranscriptSegment], duration: Optional[float]) -> float:
    if not duration or duration <= 0:
        return 0.0
    words = sum(len(segment.text.split()) for segment in segments)
    return words / (duration / 60.0)


class PacingAnalyzer:
    """Derives speech pace and dead air from the time-aligned transcript."""

    def __init__(
        self,
        provider: VideoIntelligenceProvider,
        executor: RetryExecutor,
        dead_air_threshold: float = 2.5,
    ):
        self.provider = provider
        self.executor = executor
        self.dead_air_threshold = dead_air_threshold

    async def __call__(self, handle: VideoHandle) -> PacingSignal:
        segments = await self.executor.run(
            lambda: self.provider.get_transcript(handle.index_id, handle.video_id),
            description="fetch transcript",
        )
        if not segments:
            logger.info(f"Video {handle.video_id} has no speech track")
            return PacingSignal(has_speech=False, duration=handle.duration)

        duration = handle.duration or max(segment.end for segment in segments)
        signal = PacingSignal(
            has_speech=True,
            words_per_minute=round(words_per_minute(segments, duration), 1),
            dead_air_events=count_dead_air(segments, self.dead_air_threshold),
            duration=duration,
        )
        logger.info(
            f"Pacing for {handle.video_id}: {signal.words_per_minute} wpm, "
            f"{signal.dead_air_events} dead air event(s)"
        )
        return signal
