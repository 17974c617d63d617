import asyncio
from typing import AsyncIterator, List, Optional

from loguru import logger

from vidscore.video_pipeline.core.models import EventKind, ProgressEvent, ScoreReport


class ProgressChannel:
    """
    Ordered progress stream for exactly one pipeline run.

    Fractions are clamped to [0, 1] and never go below the last emitted value.
    ``complete`` or ``fail`` sends the terminal event and closes the channel;
    anything sent afterwards is dropped. ``detach`` marks the reader as gone,
    after which sends are dropped too while the run itself carries on.
    """

    def __init__(self, keep_history: bool = False):
        self._queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue()
        self._fraction = 0.0
        self._closed = False
        self._detached = False
        self.history: Optional[List[ProgressEvent]] = [] if keep_history else None

    @property
    def fraction(self) -> float:
        return self._fraction

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        return self._detached

    def progress(self, message: str, fraction: float) -> None:
        self._send(EventKind.PROGRESS, message, fraction)

    def complete(self, report: ScoreReport, message: str = "Analysis complete") -> None:
        self._send(EventKind.COMPLETE, message, 1.0, report)

    def fail(self, message: str) -> None:
        self._send(EventKind.ERROR, message, self._fraction)

    def detach(self) -> None:
        if not self._detached:
            logger.info("Progress consumer went away; further events are dropped")
        self._detached = True

    def _send(self, kind: EventKind, message: str, fraction: float, report: Optional[ScoreReport] = None) -> None:
        if self._closed:
            logger.debug(f"Dropping {kind.value} event on closed channel: {message}")
            return

        fraction = max(self._fraction, min(1.0, max(0.0, float(fraction))))
        self._fraction = fraction
        event = ProgressEvent(kind=kind, message=message, fraction=fraction, report=report)
        if kind is not EventKind.PROGRESS:
            self._closed = True

        if self.history is not None:
            self.history.append(event)
        if not self._detached:
            self._queue.put_nowait(event)

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self._queue.get()
            yield event
            if event.is_terminal:
                return
