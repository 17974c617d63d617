"""
Shared fakes for the two external collaborators.

Nothing here touches the network or really sleeps: the video intelligence
service and the generative scorer are in-memory fakes, and every sleep is
recorded instead of awaited.
"""

import json
import re
from typing import Any, Dict, List, Optional

import pytest

from vidscore.exceptions import ProviderException
from vidscore.providers.base import LLMProvider, VideoIntelligenceProvider
from vidscore.video_pipeline.core.models import (
    LogicalIndex,
    SearchMatch,
    TaskStatus,
    TaskStatusReport,
    TranscriptSegment,
)


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers every requested delay."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeVideoProvider(VideoIntelligenceProvider):
    def __init__(
        self,
        statuses: Optional[List[TaskStatusReport]] = None,
        search_results: Optional[Dict[str, List[SearchMatch]]] = None,
        transcript: Optional[List[TranscriptSegment]] = None,
        niche_answer: str = "general",
        topics: Optional[List[str]] = None,
        indexes: Optional[List[LogicalIndex]] = None,
    ):
        self.statuses = list(statuses or [TaskStatusReport(TaskStatus.READY, video_id="vid-1", duration=10.0)])
        self.search_results = search_results or {}
        self.transcript = transcript or []
        self.niche_answer = niche_answer
        self.topics = topics or []
        self.indexes = list(indexes or [])
        self.calls: List[tuple] = []
        self.deleted: List[tuple] = []
        self.fail_delete = False
        self.fail_search: Dict[str, Exception] = {}

    async def list_indexes(self) -> List[LogicalIndex]:
        self.calls.append(("list_indexes",))
        return list(self.indexes)

    async def create_index(self, name: str, capabilities: Dict[str, Any]) -> LogicalIndex:
        self.calls.append(("create_index", name))
        index = LogicalIndex(index_id=f"idx-{len(self.indexes) + 1}", name=name)
        self.indexes.append(index)
        return index

    async def create_indexing_task(self, index_id: str, asset) -> str:
        self.calls.append(("create_indexing_task", index_id, asset.path))
        return "task-1"

    async def get_task_status(self, task_id: str) -> TaskStatusReport:
        self.calls.append(("get_task_status", task_id))
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    async def semantic_search(self, index_id: str, query: str, video_id: str) -> List[SearchMatch]:
        self.calls.append(("semantic_search", query))
        for key, error in self.fail_search.items():
            if key in query:
                raise error
        for key, matches in self.search_results.items():
            if key in query:
                return matches
        return []

    async def get_transcript(self, index_id: str, video_id: str) -> List[TranscriptSegment]:
        self.calls.append(("get_transcript", video_id))
        return list(self.transcript)

    async def describe_video(self, index_id: str, video_id: str, instruction: str) -> str:
        self.calls.append(("describe_video", instruction[:40]))
        if "niche" in instruction.lower():
            return self.niche_answer
        return "Target Audience: gym beginners\nThe creator demonstrates a squat with clear form."

    async def get_topics(self, index_id: str, video_id: str) -> List[str]:
        self.calls.append(("get_topics", video_id))
        return list(self.topics)

    async def delete_video(self, index_id: str, video_id: str) -> bool:
        if self.fail_delete:
            raise ProviderException("delete refused", status_code=500)
        self.deleted.append((index_id, video_id))
        return True

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


def scripted_report(messages: List[Dict[str, str]]) -> str:
    """A plausible scorer answer that reacts to the measured signals in the prompt."""
    prompt = messages[-1]["content"]
    keys = re.findall(r'Metric Key: "([^"]+)"', prompt)
    weaknesses = []
    if "Pacing issue" in prompt:
        weaknesses.append({"title": "Slow pacing", "description": "Dead air in the middle loses viewers."})
    return json.dumps({
        "overall": 74,
        "scores": [{"key": key, "label": key.title(), "score": 70, "reason": "Solid"} for key in keys],
        "target_audience_analysis": "Useful for beginners.",
        "strengths": [{"title": "Clear demo", "description": "Form is easy to follow."}],
        "weaknesses": weaknesses,
        "tips": [{"title": "Trim pauses", "description": "Cut the silent gap."}],
        "metadata": {"caption": "Squat basics", "hashtags": ["#fitness"]},
    })


class FakeLLMProvider(LLMProvider):
    def __init__(self, responses: Optional[List[Any]] = None, chunk_size: int = 8):
        # Each entry is a string answer or an exception to raise; the last one repeats
        self.responses = list(responses or [])
        self.chunk_size = chunk_size
        self.requests: List[List[Dict[str, str]]] = []
        self.closed = False

    def _next(self, messages):
        self.requests.append(messages)
        if not self.responses:
            return scripted_report(messages)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def chat_completion(self, messages, **kwargs) -> Dict[str, Any]:
        return {"content": self._next(messages)}

    async def stream_chat_completion(self, messages, **kwargs):
        text = self._next(messages)
        for start in range(0, len(text), self.chunk_size):
            yield text[start:start + self.chunk_size]

    async def close(self):
        self.closed = True


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def video_provider():
    return FakeVideoProvider()


@pytest.fixture
def llm_provider():
    return FakeLLMProvider()


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return str(path)
