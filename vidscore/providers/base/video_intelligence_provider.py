from abc import ABC, abstractmethod
from typing import Dict, List, Any

from vidscore.video_pipeline.core.models import (
    LogicalIndex,
    SearchMatch,
    TaskStatusReport,
    TranscriptSegment,
    VideoAsset,
)


class VideoIntelligenceProvider(ABC):
    """Abstract base class for video understanding services."""

    @abstractmethod
    async def list_indexes(self) -> List[LogicalIndex]:
        """List the logical indexes visible to this account."""
        pass

    @abstractmethod
    async def create_index(self, name: str, capabilities: Dict[str, Any]) -> LogicalIndex:
        """
        Create a logical index.

        Args:
            name: Name of the index to create
            capabilities: Provider-specific model/capability configuration

        Returns:
            LogicalIndex: The created index
        """
        pass

    @abstractmethod
    async def create_indexing_task(self, index_id: str, asset: VideoAsset) -> str:
        """Upload a video into an index and return the task id."""
        pass

    @abstractmethod
    async def get_task_status(self, task_id: str) -> TaskStatusReport:
        """Fetch the current status of an indexing task."""
        pass

    @abstractmethod
    async def semantic_search(self, index_id: str, query: str, video_id: str) -> List[SearchMatch]:
        """
        Search inside a single video.

        Returns:
            List[SearchMatch]: Matches ranked best first
        """
        pass

    @abstractmethod
    async def get_transcript(self, index_id: str, video_id: str) -> List[TranscriptSegment]:
        """Time-aligned transcript segments; empty when the video has no speech."""
        pass

    @abstractmethod
    async def describe_video(self, index_id: str, video_id: str, instruction: str) -> str:
        """Open-ended descriptive analysis of the video."""
        pass

    @abstractmethod
    async def get_topics(self, index_id: str, video_id: str) -> List[str]:
        """Topics and hashtags the service associates with the video."""
        pass

    @abstractmethod
    async def delete_video(self, index_id: str, video_id: str) -> bool:
        """Remove an indexed video."""
        pass

    async def close(self):
        """Close the client and cleanup resources. Optional to implement."""
        pass
