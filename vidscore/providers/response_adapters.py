"""
Canonical mapping of video intelligence service payloads.

Every known response shape is mapped here into one internal type. Anything
else is a ResponseShapeException; callers never fall through to guesses.
"""

from typing import Any, Dict, List, Optional

from vidscore.exceptions import ResponseShapeException
from vidscore.video_pipeline.core.models import (
    LogicalIndex,
    SearchMatch,
    TaskStatus,
    TaskStatusReport,
    TranscriptSegment,
)

_TEXT_KEYS = ("data", "content", "text")

_TASK_STATUS_MAP = {
    "pending": TaskStatus.QUEUED,
    "queued": TaskStatus.QUEUED,
    "validating": TaskStatus.QUEUED,
    "indexing": TaskStatus.PROCESSING,
    "processing": TaskStatus.PROCESSING,
    "ready": TaskStatus.READY,
    "failed": TaskStatus.FAILED,
}


def to_text(payload: Any) -> str:
    """Normalise a descriptive-analysis payload into a single string.

    Accepts a plain string or a mapping whose ``data``/``content``/``text``
    entry is itself a string or one more level of the same mapping.
    """
    return _to_text(payload, depth=0)


def _to_text(payload: Any, depth: int) -> str:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict) and depth < 2:
        for key in _TEXT_KEYS:
            if key in payload:
                return _to_text(payload[key], depth + 1)
    raise ResponseShapeException(
        f"Unrecognised text payload of type {type(payload).__name__}",
        error_code="UNKNOWN_SHAPE",
        details={"payload": repr(payload)[:200]},
    )


def to_index_list(payload: Any) -> List[LogicalIndex]:
    items = _list_field(payload, "data")
    indexes = []
    for item in items:
        _require_object(item, "Index entry")
        index_id = item.get("_id") or item.get("id")
        name = item.get("index_name") or item.get("name")
        if not index_id or not name:
            raise ResponseShapeException("Index entry without id or name", details={"item": item})
        indexes.append(LogicalIndex(index_id=str(index_id), name=str(name)))
    return indexes


def to_index(payload: Any, name: str) -> LogicalIndex:
    if not isinstance(payload, dict):
        raise ResponseShapeException("Index creation response is not an object")
    index_id = payload.get("_id") or payload.get("id")
    if not index_id:
        raise ResponseShapeException("Index creation response has no id", details={"payload": payload})
    return LogicalIndex(index_id=str(index_id), name=payload.get("index_name") or name)


def to_task_id(payload: Any) -> str:
    if isinstance(payload, dict):
        task_id = payload.get("_id") or payload.get("id")
        if task_id:
            return str(task_id)
    raise ResponseShapeException("Task creation response has no id", details={"payload": payload})


def to_task_status(payload: Any) -> TaskStatusReport:
    if not isinstance(payload, dict) or "status" not in payload:
        raise ResponseShapeException("Task status response has no status field")
    raw_status = str(payload["status"]).lower()
    status = _TASK_STATUS_MAP.get(raw_status)
    if status is None:
        raise ResponseShapeException(f"Unknown task status '{raw_status}'", details={"payload": payload})

    metadata = payload.get("system_metadata") or payload.get("metadata") or {}
    duration = _optional_float(metadata.get("duration") if isinstance(metadata, dict) else None)
    error = None
    if status is TaskStatus.FAILED:
        error = payload.get("error") or payload.get("message") or "unknown error"
    return TaskStatusReport(
        status=status,
        video_id=payload.get("video_id"),
        duration=duration,
        error=error,
    )


def to_search_matches(payload: Any) -> List[SearchMatch]:
    matches = []
    for item in _list_field(payload, "data"):
        _require_object(item, "Search match")
        confidence = item.get("score", item.get("confidence"))
        # A bare high/medium/low label carries no comparable score
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ResponseShapeException("Search match without a numeric score", details={"item": item})
        if "start" not in item or "end" not in item:
            raise ResponseShapeException("Search match without a time range", details={"item": item})
        matches.append(
            SearchMatch(
                start=float(item["start"]),
                end=float(item["end"]),
                confidence=float(confidence),
                video_id=item.get("video_id"),
            )
        )
    return matches


def to_transcript(payload: Any) -> List[TranscriptSegment]:
    if isinstance(payload, dict):
        items = payload.get("transcription")
        if items is None:
            items = payload.get("data")
        if items is None:
            # Video exists but carries no speech track
            return []
    elif isinstance(payload, list):
        items = payload
    else:
        raise ResponseShapeException("Transcript payload is neither an object nor a list")

    if not isinstance(items, list):
        raise ResponseShapeException("Transcript segments are not a list")

    segments = []
    for item in items:
        _require_object(item, "Transcript segment")
        text = item.get("value", item.get("text"))
        if text is None or "start" not in item or "end" not in item:
            raise ResponseShapeException("Transcript segment missing fields", details={"item": item})
        segments.append(TranscriptSegment(start=float(item["start"]), end=float(item["end"]), text=str(text)))
    return segments


def to_topics(payload: Any) -> List[str]:
    if not isinstance(payload, dict):
        raise ResponseShapeException("Topic payload is not an object")
    topics: List[str] = []
    for key in ("topics", "hashtags"):
        values = payload.get(key) or []
        if not isinstance(values, list):
            raise ResponseShapeException(f"'{key}' is not a list")
        topics.extend(str(v) for v in values if v)
    return topics


def _require_object(item: Any, what: str) -> None:
    if not isinstance(item, dict):
        raise ResponseShapeException(
            f"{what} is a {type(item).__name__}, expected an object",
            error_code="UNKNOWN_SHAPE",
            details={"item": repr(item)[:200]},
        )


def _list_field(payload: Any, key: str) -> List[Dict]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]
    raise ResponseShapeException(f"Expected a list under '{key}'", details={"payload": repr(payload)[:200]})


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
