import re
from typing import Optional, Sequence

from loguru import logger

from vidscore.providers.base import VideoIntelligenceProvider
from vidscore.utils.error_handler import RetryExecutor
from vidscore.video_pipeline.core.models import NicheSignal, VideoHandle
from vidscore.video_pipeline.prompts_and_description import (
    GENERIC_NICHE,
    NICHE_CATALOGUE,
    NICHE_CLASSIFICATION_PROMPT,
)


def parse_niche(text: str, catalogue: Sequence[str] = NICHE_CATALOGUE) -> str:
    """First catalogue label appearing as a word in ``text``, else the generic niche."""
    words = re.findall(r"[a-z]+", text.lower())
    for word in words:
        if word in catalogue:
            return word
    return GENERIC_NICHE


class NicheClassifier:
    """Decides the audience niche, from the caller or from one describe query."""

    def __init__(
        self,
        provider: VideoIntelligenceProvider,
        executor: RetryExecutor,
        catalogue: Sequence[str] = NICHE_CATALOGUE,
        prompt_template: str = NICHE_CLASSIFICATION_PROMPT,
    ):
        self.provider = provider
        self.executor = executor
        self.catalogue = tuple(catalogue)
        self.prompt_template = prompt_template

    async def __call__(self, handle: VideoHandle, explicit_niche: Optional[str] = None) -> NicheSignal:
        if explicit_niche and explicit_niche.strip():
            return NicheSignal(niche=explicit_niche.strip(), source="caller")

        instruction = self.prompt_template.format(
            labels=", ".join(self.catalogue), fallback=GENERIC_NICHE
        )
        try:
            text = await self.executor.run(
                lambda: self.provider.describe_video(handle.index_id, handle.video_id, instruction),
                description="classify niche",
            )
        except Exception as e:
            logger.warning(f"Niche classification failed, using '{GENERIC_NICHE}': {e}")
            return NicheSignal(niche=GENERIC_NICHE, source="fallback")

        niche = parse_niche(text, self.catalogue)
        logger.info(f"Classified video {handle.video_id} as '{niche}'")
        return NicheSignal(niche=niche, source="classifier")
