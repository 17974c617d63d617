import json
import os
from typing import Any, Dict, List, Optional

import aiofiles
import aiohttp
from loguru import logger

from vidscore.providers.base import VideoIntelligenceProvider
from vidscore.providers import response_adapters as adapt
from vidscore.exceptions import ConfigurationException, ProviderException
from vidscore.utils.error_handler import convert_exceptions
from vidscore.video_pipeline.core.models import (
    LogicalIndex,
    SearchMatch,
    TaskStatusReport,
    TranscriptSegment,
    VideoAsset,
)


class HttpVideoIntelligenceProvider(VideoIntelligenceProvider):
    """
    REST client for an indexes/tasks/search/analyze video understanding API.

    Authentication is a static API key sent as ``x-api-key``. One aiohttp
    session is shared for the lifetime of the provider; call ``close()`` when done.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.base_url = (config.get("base_url") or "").rstrip("/")
        self.api_key = config.get("api_key")
        if not self.base_url:
            raise ConfigurationException("Video intelligence base_url is required")
        if not self.api_key:
            raise ConfigurationException("Video intelligence api_key is required")
        self.timeout = aiohttp.ClientTimeout(total=config.get("timeout", 120))
        self._session: Optional[aiohttp.ClientSession] = None

    def default_capabilities(self) -> Dict[str, Any]:
        """Fixed model configuration used when a new index must be created."""
        return {
            "models": [
                {
                    "model_name": self.config.get("search_model", "marengo2.7"),
                    "model_options": ["visual", "audio"],
                },
                {
                    "model_name": self.config.get("analysis_model", "pegasus1.2"),
                    "model_options": ["visual", "audio"],
                },
            ]
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"x-api-key": self.api_key},
                timeout=self.timeout,
            )
        return self._session

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        session = self._get_session()
        url = f"{self.base_url}{path}"
        async with session.request(method, url, **kwargs) as response:
            if response.status >= 400:
                body = await response.text()
                raise ProviderException(
                    f"{method} {path} returned {response.status}: {body[:300]}",
                    error_code="HTTP_ERROR",
                    details={"url": url},
                    status_code=response.status,
                )
            if response.status == 204:
                return None
            return await response.json(content_type=None)

    @convert_exceptions({Exception: ProviderException})
    async def list_indexes(self) -> List[LogicalIndex]:
        payload = await self._request("GET", "/indexes", params={"page_limit": 50})
        return adapt.to_index_list(payload)

    @convert_exceptions({Exception: ProviderException})
    async def create_index(self, name: str, capabilities: Dict[str, Any]) -> LogicalIndex:
        body = {"index_name": name, **(capabilities or self.default_capabilities())}
        payload = await self._request("POST", "/indexes", json=body)
        index = adapt.to_index(payload, name)
        logger.info(f"Created index '{name}' ({index.index_id})")
        return index

    @convert_exceptions({Exception: ProviderException})
    async def create_indexing_task(self, index_id: str, asset: VideoAsset) -> str:
        async with aiofiles.open(asset.path, "rb") as f:
            content = await f.read()

        form = aiohttp.FormData()
        form.add_field("index_id", index_id)
        form.add_field(
            "video_file",
            content,
            filename=asset.filename or os.path.basename(asset.path),
            content_type=asset.content_type,
        )
        payload = await self._request("POST", "/tasks", data=form)
        task_id = adapt.to_task_id(payload)
        logger.info(f"Created indexing task {task_id} in index {index_id}")
        return task_id

    @convert_exceptions({Exception: ProviderException})
    async def get_task_status(self, task_id: str) -> TaskStatusReport:
        payload = await self._request("GET", f"/tasks/{task_id}")
        return adapt.to_task_status(payload)

    @convert_exceptions({Exception: ProviderException})
    async def semantic_search(self, index_id: str, query: str, video_id: str) -> List[SearchMatch]:
        form = aiohttp.FormData()
        form.add_field("index_id", index_id)
        form.add_field("query_text", query)
        form.add_field("search_options", "visual")
        form.add_field("search_options", "audio")
        form.add_field("filter", json.dumps({"id": [video_id]}))
        form.add_field("sort_option", "score")
        form.add_field("page_limit", "5")
        payload = await self._request("POST", "/search", data=form)
        return adapt.to_search_matches(payload)

    @convert_exceptions({Exception: ProviderException})
    async def get_transcript(self, index_id: str, video_id: str) -> List[TranscriptSegment]:
        try:
            payload = await self._request(
                "GET",
                f"/indexes/{index_id}/videos/{video_id}",
                params={"transcription": "true"},
            )
        except ProviderException as e:
            if e.status_code == 404:
                logger.info(f"No transcript available for video {video_id}")
                return []
            raise
        return adapt.to_transcript(payload)

    @convert_exceptions({Exception: ProviderException})
    async def describe_video(self, index_id: str, video_id: str, instruction: str) -> str:
        body = {"video_id": video_id, "prompt": instruction, "temperature": 0.2, "stream": False}
        payload = await self._request("POST", "/analyze", json=body)
        return adapt.to_text(payload)

    @convert_exceptions({Exception: ProviderException})
    async def get_topics(self, index_id: str, video_id: str) -> List[str]:
        body = {"video_id": video_id, "types": ["topic", "hashtag"]}
        payload = await self._request("POST", "/gist", json=body)
        return adapt.to_topics(payload)

    @convert_exceptions({Exception: ProviderException})
    async def delete_video(self, index_id: str, video_id: str) -> bool:
        await self._request("DELETE", f"/indexes/{index_id}/videos/{video_id}")
        logger.info(f"Deleted video {video_id} from index {index_id}")
        return True

    async def close(self):
        """Close the HTTP session."""
        if self._session is not None and not self._session.closed:
            logger.info("Closing video intelligence HTTP session")
            await self._session.close()
        self._session = None
