import asyncio
import os
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Set

from loguru import logger

from vidscore.config.settings import PipelineConfig, VidScoreConfig
from vidscore.exceptions import ExtractionTimeoutException, ValidationException, VidScoreException
from vidscore.providers.base import LLMProvider, VideoIntelligenceProvider
from vidscore.providers.factory import provider_factory
from vidscore.utils.error_handler import ErrorHandler, RetryExecutor, gather_settled
from vidscore.utils.validation import AnalyzeVideoRequest
from vidscore.video_pipeline.core.agents import (
    ForensicDefectSearch,
    NicheClassifier,
    PacingAnalyzer,
    TopicTagger,
)
from vidscore.video_pipeline.core.analyzer import VideoAnalyzer
from vidscore.video_pipeline.core.composer import PromptComposer
from vidscore.video_pipeline.core.indexing import IndexingTaskManager, IndexRegistry
from vidscore.video_pipeline.core.models import (
    DEFAULT_MIME_TYPE,
    SUPPORTED_VIDEO_MIME_TYPES,
    AnalysisContext,
    IndexingTask,
    PollState,
    ProgressEvent,
    ScoreReport,
    VideoAsset,
    VideoHandle,
)
from vidscore.video_pipeline.core.progress import ProgressChannel
from vidscore.video_pipeline.core.reaper import ResourceReaper
from vidscore.video_pipeline.core.scoring import GENERATION_START, ScoringValidator

UPLOAD_FRACTION = 0.1
PROCESSING_FRACTION = 0.2
POLL_STEP = 0.05
POLL_CAP = 0.55
EXTRACTION_FRACTION = 0.6
DRAFTING_FRACTION = 0.65


class AnalysisPipeline:
    """
    Scores one short-form video end to end.

    The run uploads the video, waits for indexing, extracts technical, pacing,
    niche and topic signals concurrently alongside the perceptual analysis,
    then asks the generative scorer for a validated ScoreReport. Progress is
    reported on a ProgressChannel and the local and remote copies of the video
    are cleaned up on every exit path.

    Args:
        video_provider: Video intelligence service client.
        llm_provider: Generative scoring service client.
        registry: Process-wide index registry; created on demand when omitted.
        config: Pipeline knobs (retries, polling, thresholds, defaults).
        index_name: Logical index every video is uploaded into.
        sleep: Awaitable sleep used for backoff and polling, injectable for tests.
        composer: Prompt composer; override to swap prompt templates.
        temperature: Sampling temperature for the scoring call.

    Example:
        >>> pipeline = await AnalysisPipeline.create()
        >>> request = AnalyzeVideoRequest(video_path="clip.mp4", audience="gym beginners")
        >>> async for event in pipeline.stream(request):
        >>>     print(event.to_dict())
    """

    def __init__(
        self,
        video_provider: VideoIntelligenceProvider,
        llm_provider: LLMProvider,
        registry: Optional[IndexRegistry] = None,
        config: Optional[PipelineConfig] = None,
        index_name: str = "vidscore",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        composer: Optional[PromptComposer] = None,
        temperature: float = 0.2,
    ):
        self.video_provider = video_provider
        self.llm_provider = llm_provider
        self.config = config or PipelineConfig()
        self.index_name = index_name
        self.executor = RetryExecutor(
            attempts=self.config.retry_attempts,
            initial_delay=self.config.retry_initial_delay,
            sleep=sleep,
        )
        self.registry = registry or IndexRegistry(video_provider, self.executor)
        self.indexer = IndexingTaskManager(
            video_provider,
            self.registry,
            self.executor,
            poll_interval=self.config.poll_interval,
            max_attempts=self.config.poll_max_attempts,
            sleep=sleep,
        )
        self.defect_search = ForensicDefectSearch(
            video_provider, self.executor, threshold=self.config.defect_confidence_threshold
        )
        self.pacing = PacingAnalyzer(
            video_provider, self.executor, dead_air_threshold=self.config.dead_air_threshold
        )
        self.niche_classifier = NicheClassifier(video_provider, self.executor)
        self.topic_tagger = TopicTagger(video_provider, self.executor)
        self.analyzer = VideoAnalyzer(video_provider, self.executor, mode=self.config.analysis_mode)
        self.composer = composer or PromptComposer()
        self.scorer = ScoringValidator(
            llm_provider,
            self.executor,
            temperature=temperature,
            stream=self.config.stream_scoring,
            min_hashtags=self.config.min_hashtags,
            max_hashtags=self.config.max_hashtags,
        )
        self._runs: Set[asyncio.Task] = set()
        self._reapers: Set[ResourceReaper] = set()

    @classmethod
    async def create(cls, config: Optional[VidScoreConfig] = None, **kwargs) -> "AnalysisPipeline":
        """Build a pipeline from configuration and populate the index registry once."""
        config = config or VidScoreConfig()
        video_provider = provider_factory.create_video_provider(config=config)
        llm_provider = provider_factory.create_llm_provider(config=config)
        pipeline = cls(
            video_provider,
            llm_provider,
            config=config.pipeline,
            index_name=config.video.index_name,
            temperature=config.llm.temperature,
            **kwargs,
        )
        await pipeline.registry.ensure_index(pipeline.index_name)
        return pipeline

    async def analyze(self, request: AnalyzeVideoRequest, channel: Optional[ProgressChannel] = None) -> ScoreReport:
        """
        Run one analysis and return its report.

        Failures are reported on ``channel`` (when given) and then re-raised.
        """
        if channel is None:
            channel = ProgressChannel()
            channel.detach()
        try:
            report = await self._run(request, channel)
        except Exception as e:
            if isinstance(e, VidScoreException):
                logger.error(f"Analysis of {request.video_path} failed: {e}")
            else:
                logger.exception(f"Unexpected error while analysing {request.video_path}")
            channel.fail(ErrorHandler.public_message(e))
            raise
        channel.complete(report)
        return report

    async def stream(self, request: AnalyzeVideoRequest) -> AsyncIterator[ProgressEvent]:
        """
        Run one analysis and yield its progress events, ending with ``complete`` or ``error``.

        If the consumer stops iterating early the run keeps going in the
        background and its remaining events are dropped.
        """
        channel = ProgressChannel()
        run = asyncio.create_task(self._run_reported(request, channel))
        self._runs.add(run)
        run.add_done_callback(self._runs.discard)
        try:
            async for event in channel:
                yield event
        finally:
            if not run.done():
                channel.detach()

    async def _run_reported(self, request: AnalyzeVideoRequest, channel: ProgressChannel) -> Optional[ScoreReport]:
        try:
            return await self.analyze(request, channel)
        except Exception:
            # Already logged and sent to the consumer as an error event
            return None

    async def _run(self, request: AnalyzeVideoRequest, channel: ProgressChannel) -> ScoreReport:
        asset = self._prepare_asset(request)
        reaper = ResourceReaper(asset, self.video_provider, delete_remote=self.config.delete_remote_video)
        try:
            async with reaper:
                channel.progress("Uploading video", UPLOAD_FRACTION)
                index = await self.indexer.ensure_index(self.index_name)
                task = await self.indexer.submit(index, asset)

                channel.progress("Processing video", PROCESSING_FRACTION)
                handle = await self._await_indexing(task, reaper, channel)

                channel.progress("Extracting signals", EXTRACTION_FRACTION)
                context = await self._extract(handle, request.niche or request.audience)

                channel.progress("Drafting report", DRAFTING_FRACTION)
                scoring_request = self.composer.compose(
                    context,
                    audience=request.audience or self.config.default_audience,
                    platform=request.platform or self.config.default_platform,
                    goal=request.goal or self.config.default_goal,
                    metrics=request.metrics,
                )
                channel.progress("Generating report", GENERATION_START)
                report = await self.scorer.score(
                    scoring_request,
                    topics=context.topics.topics,
                    on_progress=lambda fraction: channel.progress("Generating report", fraction),
                )
        finally:
            if reaper.has_pending:
                self._reapers.add(reaper)

        if report.degraded:
            logger.warning(f"Analysis of {request.video_path} completed with the default report")
        else:
            logger.info(f"Analysis of {request.video_path} complete: overall {report.overall}")
        return report

    def _prepare_asset(self, request: AnalyzeVideoRequest) -> VideoAsset:
        if not os.path.isfile(request.video_path):
            raise ValidationException(
                f"Video file not found: {request.video_path}",
                error_code="MISSING_ASSET",
            )

        content_type = (request.content_type or DEFAULT_MIME_TYPE).lower()
        if content_type not in SUPPORTED_VIDEO_MIME_TYPES:
            logger.warning(f"Unsupported content type '{content_type}', sending as {DEFAULT_MIME_TYPE}")
            content_type = DEFAULT_MIME_TYPE

        return VideoAsset(path=request.video_path, content_type=content_type, filename=request.display_name())

    async def _await_indexing(
        self, task: IndexingTask, reaper: ResourceReaper, channel: ProgressChannel
    ) -> VideoHandle:
        def on_poll(attempt: int, state: PollState) -> None:
            fraction = min(POLL_CAP, PROCESSING_FRACTION + POLL_STEP * attempt)
            channel.progress(f"Processing video ({state.value})", fraction)

        try:
            handle = await self.indexer.await_ready(task, on_poll=on_poll)
        finally:
            # Also covers failed and timed-out tasks that already have a video id
            if task.video_id:
                reaper.track_remote(task.index_id, task.video_id)
        return handle

    async def _extract(self, handle: VideoHandle, explicit_niche: Optional[str]) -> AnalysisContext:
        # Every sub-call settles before an error propagates
        stage = gather_settled(
            self.defect_search(handle),
            self.pacing(handle),
            self.niche_classifier(handle, explicit_niche),
            self.topic_tagger(handle),
            self.analyzer(handle),
        )
        timeout = self.config.extraction_timeout
        try:
            if timeout:
                defects, pacing, niche, topics, analysis = await asyncio.wait_for(stage, timeout)
            else:
                defects, pacing, niche, topics, analysis = await stage
        except asyncio.TimeoutError as e:
            raise ExtractionTimeoutException(
                f"Signal extraction did not finish within {timeout}s",
                error_code="EXTRACTION_TIMEOUT",
            ) from e

        return AnalysisContext(
            defects=defects,
            pacing=pacing,
            niche=niche,
            topics=topics,
            analysis=analysis,
        )

    async def wait_idle(self) -> None:
        """Wait for background runs and pending remote deletions to finish."""
        if self._runs:
            await asyncio.gather(*list(self._runs), return_exceptions=True)
        reapers = list(self._reapers)
        self._reapers.clear()
        for reaper in reapers:
            await reaper.wait_closed()

    async def close(self) -> None:
        await self.wait_idle()
        await self.video_provider.close()
        await self.llm_provider.close()
