import re
from typing import Dict, Mapping, Optional

from loguru import logger

from vidscore.providers.base import VideoIntelligenceProvider
from vidscore.utils.error_handler import RetryExecutor, gather_settled
from vidscore.video_pipeline.core.models import VideoHandle
from vidscore.video_pipeline.prompts_and_description import (
    ANALYSIS_PROMPTS,
    CONSOLIDATED_ANALYSIS_PROMPT,
)

SPLIT = "split"
CONSOLIDATED = "consolidated"

# Lines the service sometimes echoes back from the context it was given
ECHO_PATTERNS = (
    re.compile(r"^\s*(target\s+)?audience\s*:", re.IGNORECASE),
    re.compile(r"^\s*platform\s*:", re.IGNORECASE),
    re.compile(r"^\s*you are an? (expert|helpful)", re.IGNORECASE),
    re.compile(r"^\s*===.*===\s*$"),
    re.compile(r"^\s*(instructions?|your goal)\s*:", re.IGNORECASE),
    re.compile(r"^\s*(describe|assess|analy[sz]e) (the|this) ", re.IGNORECASE),
)


def sanitize_analysis(text: str) -> str:
    """Drop echoed instruction/boilerplate lines and collapse blank runs."""
    kept = [line.rstrip() for line in text.splitlines() if not any(p.search(line) for p in ECHO_PATTERNS)]
    cleaned = "\n".join(kept)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


class VideoAnalyzer:
    """
    Free-text perceptual analysis of an indexed video.

    In ``split`` mode narrative, technical and visual queries run in parallel
    and each becomes its own axis. ``consolidated`` mode issues one query whose
    answer is stored under the ``overall`` axis.
    """

    def __init__(
        self,
        provider: VideoIntelligenceProvider,
        executor: RetryExecutor,
        mode: str = SPLIT,
        prompts: Optional[Mapping[str, str]] = None,
        consolidated_prompt: str = CONSOLIDATED_ANALYSIS_PROMPT,
    ):
        if mode not in (SPLIT, CONSOLIDATED):
            raise ValueError(f"Unknown analysis mode: {mode}")
        self.provider = provider
        self.executor = executor
        self.mode = mode
        self.prompts = dict(prompts or ANALYSIS_PROMPTS)
        self.consolidated_prompt = consolidated_prompt

    async def __call__(self, handle: VideoHandle) -> Dict[str, str]:
        if self.mode == CONSOLIDATED:
            text = await self._describe(handle, "overall", self.consolidated_prompt)
            return {"overall": text}

        axes = list(self.prompts)
        texts = await gather_settled(
            *(self._describe(handle, axis, self.prompts[axis]) for axis in axes)
        )
        return dict(zip(axes, texts))

    async def _describe(self, handle: VideoHandle, axis: str, instruction: str) -> str:
        raw = await self.executor.run(
            lambda: self.provider.describe_video(handle.index_id, handle.video_id, instruction),
            description=f"{axis} analysis",
        )
        text = sanitize_analysis(raw)
        logger.debug(f"{axis} analysis: {len(text)} chars after sanitising")
        return text
