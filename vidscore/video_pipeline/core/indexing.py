import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger

from vidscore.exceptions import IndexingFailedException, IndexingTimeoutException
from vidscore.providers.base import VideoIntelligenceProvider
from vidscore.utils.error_handler import RetryExecutor
from vidscore.video_pipeline.core.models import (
    IndexingTask,
    LogicalIndex,
    PollState,
    TaskStatus,
    VideoAsset,
    VideoHandle,
)


class IndexRegistry:
    """
    Name -> LogicalIndex cache shared by all runs of one process.

    ``ensure_index`` looks the name up at the service before creating it. Two
    concurrent first calls for the same name can both miss and both create;
    that window is accepted and no lock is taken.
    """

    def __init__(
        self,
        provider: VideoIntelligenceProvider,
        executor: Optional[RetryExecutor] = None,
        capabilities: Optional[Dict[str, Any]] = None,
    ):
        self.provider = provider
        self.executor = executor or RetryExecutor()
        self.capabilities = capabilities
        self._indexes: Dict[str, LogicalIndex] = {}

    def get(self, name: str) -> Optional[LogicalIndex]:
        return self._indexes.get(name)

    async def ensure_index(self, name: str) -> LogicalIndex:
        cached = self._indexes.get(name)
        if cached is not None:
            return cached

        existing = await self.executor.run(self.provider.list_indexes, description="list indexes")
        for index in existing:
            if index.name == name:
                logger.info(f"Reusing index '{name}' ({index.index_id})")
                self._indexes[name] = index
                return index

        capabilities = self.capabilities
        if capabilities is None and hasattr(self.provider, "default_capabilities"):
            capabilities = self.provider.default_capabilities()
        logger.info(f"Index '{name}' not found, creating it")
        index = await self.executor.run(
            lambda: self.provider.create_index(name, capabilities or {}),
            description=f"create index {name}",
        )
        self._indexes[name] = index
        return index


def next_poll_state(observed: TaskStatus, attempt: int, max_attempts: int) -> PollState:
    """
    Transition function of the indexing poll loop.

    Args:
        observed: Status reported by the most recent poll.
        attempt: 1-based number of that poll.
        max_attempts: Poll budget.
    """
    if observed is TaskStatus.READY:
        return PollState.READY
    if observed is TaskStatus.FAILED:
        return PollState.FAILED
    if attempt >= max_attempts:
        return PollState.TIMED_OUT
    if observed is TaskStatus.PROCESSING:
        return PollState.PROCESSING
    return PollState.QUEUED


class IndexingTaskManager:
    """
    Uploads a video into a logical index and waits for it to become queryable.

    Args:
        provider: Video intelligence service client.
        registry: Shared index registry.
        executor: Retry policy for every remote call.
        poll_interval: Seconds between status polls.
        max_attempts: Poll budget before timing out.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        provider: VideoIntelligenceProvider,
        registry: IndexRegistry,
        executor: Optional[RetryExecutor] = None,
        poll_interval: float = 2.0,
        max_attempts: int = 60,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.provider = provider
        self.registry = registry
        self.executor = executor or RetryExecutor()
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def ensure_index(self, name: str) -> LogicalIndex:
        return await self.registry.ensure_index(name)

    async def submit(self, index: LogicalIndex, asset: VideoAsset) -> IndexingTask:
        task_id = await self.executor.run(
            lambda: self.provider.create_indexing_task(index.index_id, asset),
            description="create indexing task",
        )
        return IndexingTask(task_id=task_id, index_id=index.index_id)

    async def await_ready(
        self,
        task: IndexingTask,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
        on_poll: Optional[Callable[[int, PollState], Any]] = None,
    ) -> VideoHandle:
        """
        Poll the task until it is ready, failed, or the budget runs out.

        Raises:
            IndexingFailedException: The service reported the task as failed.
            IndexingTimeoutException: No terminal status within ``max_attempts`` polls.
        """
        max_attempts = max_attempts or self.max_attempts
        interval = self.poll_interval if interval is None else interval
        state = PollState.QUEUED
        attempt = 0

        while not state.is_terminal:
            if attempt > 0:
                await self._sleep(interval)
            attempt += 1
            report = await self.executor.run(
                lambda: self.provider.get_task_status(task.task_id),
                description=f"poll task {task.task_id}",
            )
            state = next_poll_state(report.status, attempt, max_attempts)
            logger.debug(f"Task {task.task_id} poll {attempt}/{max_attempts}: {report.status.value} -> {state.value}")

            if state is PollState.READY:
                if not report.video_id:
                    raise IndexingFailedException(
                        f"Task {task.task_id} is ready but reported no video id",
                        error_code="INDEXING_FAILED",
                    )
                task.video_id = report.video_id
                logger.info(f"Task {task.task_id} ready after {attempt} poll(s): video {report.video_id}")
                return VideoHandle(video_id=report.video_id, index_id=task.index_id, duration=report.duration)

            if state is PollState.FAILED:
                task.video_id = report.video_id
                raise IndexingFailedException(
                    f"Video processing failed: {report.error}",
                    error_code="INDEXING_FAILED",
                    details={"task_id": task.task_id, "video_id": report.video_id},
                )

            if on_poll is not None and not state.is_terminal:
                on_poll(attempt, state)

            # Remember the id early so cleanup can remove a half-indexed video
            if report.video_id:
                task.video_id = report.video_id

        raise IndexingTimeoutException(
            f"Video indexing did not finish within {max_attempts} polls",
            error_code="INDEXING_TIMEOUT",
            details={"task_id": task.task_id},
        )
