"""
Data models for the video scoring pipeline.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


SUPPORTED_VIDEO_MIME_TYPES = (
    "video/mp4",
    "video/mpeg",
    "video/mov",
    "video/avi",
    "video/x-flv",
    "video/mpg",
    "video/webm",
    "video/wmv",
    "video/3gpp",
)

DEFAULT_MIME_TYPE = "video/mp4"


@dataclass
class VideoAsset:
    """Local temporary video file owned by one pipeline run."""
    path: str
    content_type: str = DEFAULT_MIME_TYPE
    filename: Optional[str] = None


@dataclass(frozen=True)
class LogicalIndex:
    """Named collection at the video intelligence service."""
    index_id: str
    name: str


class TaskStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class PollState(str, Enum):
    """States of the indexing poll loop; TIMED_OUT exists only locally."""
    QUEUED = "queued"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (PollState.READY, PollState.FAILED, PollState.TIMED_OUT)


@dataclass(frozen=True)
class TaskStatusReport:
    """Canonical view of one task status response."""
    status: TaskStatus
    video_id: Optional[str] = None
    duration: Optional[float] = None
    error: Optional[str] = None


@dataclass
class IndexingTask:
    task_id: str
    index_id: str
    video_id: Optional[str] = None


@dataclass(frozen=True)
class VideoHandle:
    """Identifier of an indexed, queryable video."""
    video_id: str
    index_id: str
    duration: Optional[float] = None


@dataclass(frozen=True)
class SearchMatch:
    start: float
    end: float
    confidence: float
    video_id: Optional[str] = None


@dataclass(frozen=True)
class TranscriptSegment:
    start: float
    end: float
    text: str


# ---------------------------------------------------------------------------
# Extraction signals
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DefectSignal:
    kind: str
    query: str
    start: float
    end: float
    confidence: float

    def describe(self) -> str:
        return (
            f"{self.kind.replace('_', ' ')} detected between {self.start:.1f}s and "
            f"{self.end:.1f}s (confidence {self.confidence:.0f})"
        )


@dataclass(frozen=True)
class PacingSignal:
    has_speech: bool
    words_per_minute: float = 0.0
    dead_air_events: int = 0
    duration: Optional[float] = None

    def describe(self) -> str:
        if not self.has_speech:
            return "No speech track detected."
        return (
            f"Speech pace {self.words_per_minute:.0f} words per minute; "
            f"{self.dead_air_events} dead air gap(s) detected."
        )


@dataclass(frozen=True)
class NicheSignal:
    niche: str
    source: str = "classifier"


@dataclass(frozen=True)
class TopicSignal:
    topics: Tuple[str, ...] = ()


ExtractionSignal = Union[DefectSignal, PacingSignal, NicheSignal, TopicSignal]


class AnalysisContext:
    """
    Read-only bundle of everything extracted for one run.

    The composer consumes it exactly once; a second consume() raises.
    """

    def __init__(
        self,
        defects: List[DefectSignal],
        pacing: PacingSignal,
        niche: NicheSignal,
        topics: TopicSignal,
        analysis: Dict[str, str],
    ):
        self._defects = tuple(defects)
        self._pacing = pacing
        self._niche = niche
        self._topics = topics
        self._analysis = dict(analysis)
        self._consumed = False

    @property
    def defects(self) -> Tuple[DefectSignal, ...]:
        return self._defects

    @property
    def pacing(self) -> PacingSignal:
        return self._pacing

    @property
    def niche(self) -> NicheSignal:
        return self._niche

    @property
    def topics(self) -> TopicSignal:
        return self._topics

    @property
    def analysis(self) -> Dict[str, str]:
        return dict(self._analysis)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self) -> "AnalysisContext":
        if self._consumed:
            raise RuntimeError("AnalysisContext has already been consumed")
        self._consumed = True
        return self


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

class ScoringMetric(BaseModel):
    """Caller-defined metric the scorer must rate."""
    key: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    context: str = Field(default="")


DEFAULT_METRICS = [
    ScoringMetric(key="potential", name="Viral Potential", context="Likelihood of sharing"),
    ScoringMetric(key="hook", name="Hook", context="First 3 seconds impact"),
]


class MetricScore(BaseModel):
    key: str = Field(..., description="The internal key identifier provided in the prompt")
    label: str = Field(..., description="The human readable name of the metric")
    score: int = Field(..., ge=0, le=100, description="The score from 0-100")
    reason: str = Field(default="", description="A short explanation of why this score was given")


class FeedbackItem(BaseModel):
    title: str
    description: str = ""


class ReportMetadata(BaseModel):
    caption: str = ""
    hashtags: List[str] = Field(default_factory=list)


class ScoreReport(BaseModel):
    """Validated verdict for one video.

    Example:
        {
            "overall": 72,
            "scores": [{"key": "hook", "label": "Hook", "score": 80, "reason": "Strong opener"}],
            "target_audience_analysis": "Resonates with beginners",
            "strengths": [{"title": "Clear demo", "description": "..."}],
            "weaknesses": [{"title": "Slow pacing", "description": "..."}],
            "tips": [{"title": "Trim pauses", "description": "..."}],
            "metadata": {"caption": "3 moves for stronger legs", "hashtags": ["#fitness"]}
        }
    """
    model_config = ConfigDict(extra="ignore")

    overall: int = Field(..., ge=0, le=100)
    scores: List[MetricScore]
    target_audience_analysis: str = ""
    strengths: List[FeedbackItem]
    weaknesses: List[FeedbackItem]
    tips: List[FeedbackItem]
    metadata: ReportMetadata
    degraded: bool = False


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

class EventKind(str, Enum):
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    kind: EventKind
    message: str
    fraction: float
    report: Optional[ScoreReport] = field(default=None, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.kind in (EventKind.COMPLETE, EventKind.ERROR)

    def to_dict(self) -> Dict:
        payload = {"type": self.kind.value, "message": self.message, "progress": self.fraction}
        if self.report is not None:
            payload["result"] = self.report.model_dump()
        return payload

    def to_sse(self) -> str:
        """Server-sent-event frame for this event."""
        return f"data: {json.dumps(self.to_dict())}\n\n"
