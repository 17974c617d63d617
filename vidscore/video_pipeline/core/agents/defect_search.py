import asyncio
from typing import Dict, List, Optional

from loguru import logger

from vidscore.providers.base import VideoIntelligenceProvider
from vidscore.utils.error_handler import RetryExecutor
from vidscore.video_pipeline.core.models import DefectSignal, VideoHandle

# kind -> search query
DEFECT_CATALOGUE: Dict[str, str] = {
    "poor_lighting": "poor lighting, dark or underexposed footage",
    "camera_shake": "shaky handheld camera, unstable footage",
    "out_of_focus": "blurry, out of focus shot",
    "muffled_audio": "muffled or noisy, hard to hear audio",
}


class ForensicDefectSearch:
    """
    Looks for technical defects with one semantic search per catalogue entry.

    Only the top match of each query counts, and only when its confidence
    strictly exceeds ``threshold``. No qualifying match means no defect.
    """

    def __init__(
        self,
        provider: VideoIntelligenceProvider,
        executor: RetryExecutor,
        threshold: float = 75.0,
        catalogue: Optional[Dict[str, str]] = None,
    ):
        self.provider = provider
        self.executor = executor
        self.threshold = threshold
        self.catalogue = catalogue or DEFECT_CATALOGUE

    async def __call__(self, handle: VideoHandle) -> List[DefectSignal]:
        results = await asyncio.gather(
            *(self._search(kind, query, handle) for kind, query in self.catalogue.items())
        )
        signals = [signal for signal in results if signal is not None]
        logger.info(f"Defect search found {len(signals)} defect(s) in video {handle.video_id}")
        return signals

    async def _search(self, kind: str, query: str, handle: VideoHandle) -> Optional[DefectSignal]:
        try:
            matches = await self.executor.run(
                lambda: self.provider.semantic_search(handle.index_id, query, handle.video_id),
                description=f"defect search '{kind}'",
            )
        except Exception as e:
            logger.warning(f"Defect search for '{kind}' failed, skipping: {e}")
            return None

        if not matches:
            return None
        top = matches[0]
        if top.confidence <= self.threshold:
            return None
        return DefectSignal(
            kind=kind,
            query=query,
            start=top.start,
            end=top.end,
            confidence=top.confidence,
        )
