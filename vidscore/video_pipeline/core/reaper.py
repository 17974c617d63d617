import asyncio
import os
from typing import Optional, Set

import aiofiles.os
from loguru import logger

from vidscore.providers.base import VideoIntelligenceProvider
from vidscore.video_pipeline.core.models import VideoAsset


class ResourceReaper:
    """
    Scoped cleanup for one run.

    On exit, whatever the outcome, the local asset is deleted and, when a remote
    video was tracked and remote cleanup is enabled, its deletion is started in
    the background. Cleanup failures are logged and never replace the error or
    result of the run.

    Example:
        >>> async with ResourceReaper(asset, provider) as reaper:
        >>>     ...
        >>>     reaper.track_remote(index_id, video_id)
    """

    def __init__(
        self,
        asset: Optional[VideoAsset],
        provider: Optional[VideoIntelligenceProvider] = None,
        delete_remote: bool = True,
    ):
        self.asset = asset
        self.provider = provider
        self.delete_remote = delete_remote
        self._remote: Optional[tuple] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def track_remote(self, index_id: str, video_id: str) -> None:
        self._remote = (index_id, video_id)

    async def __aenter__(self) -> "ResourceReaper":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self._remove_local()
        self._schedule_remote()
        return False

    async def _remove_local(self) -> None:
        if self.asset is None or not self.asset.path:
            return
        try:
            if os.path.exists(self.asset.path):
                await aiofiles.os.remove(self.asset.path)
                logger.info(f"Removed local asset {self.asset.path}")
        except Exception as e:
            logger.error(f"Failed to remove local asset {self.asset.path}: {e}")

    def _schedule_remote(self) -> None:
        if not self.delete_remote or self._remote is None or self.provider is None:
            return
        index_id, video_id = self._remote
        task = asyncio.create_task(self._remove_remote(index_id, video_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _remove_remote(self, index_id: str, video_id: str) -> None:
        try:
            await self.provider.delete_video(index_id, video_id)
        except Exception as e:
            logger.warning(f"Could not delete remote video {video_id} from index {index_id}: {e}")

    async def wait_closed(self) -> None:
        """Wait for background remote deletions to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
