import json
import re
from typing import Callable, Iterable, List, Optional, Sequence

from loguru import logger
from pydantic import ValidationError

from vidscore.providers.base import LLMProvider
from vidscore.utils.error_handler import RetryExecutor
from vidscore.video_pipeline.core.composer import ScoringRequest
from vidscore.video_pipeline.core.models import (
    FeedbackItem,
    MetricScore,
    ReportMetadata,
    ScoreReport,
    ScoringMetric,
)

DEFAULT_OVERALL = 50
GENERATION_START = 0.7
GENERATION_STEP = 0.02
GENERATION_CAP = 0.95

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text.strip()


def default_report(metrics: Sequence[ScoringMetric], reason: str = "") -> ScoreReport:
    """Deterministic fallback used when the scorer's answer cannot be trusted."""
    return ScoreReport(
        overall=DEFAULT_OVERALL,
        scores=[
            MetricScore(key=m.key, label=m.name, score=DEFAULT_OVERALL, reason="Score unavailable")
            for m in metrics
        ],
        target_audience_analysis="",
        strengths=[],
        weaknesses=[
            FeedbackItem(
                title="Analysis unavailable",
                description=reason or "The scoring response could not be validated.",
            )
        ],
        tips=[],
        metadata=ReportMetadata(caption="", hashtags=[]),
        degraded=True,
    )


def _hashtag(value: str) -> str:
    body = re.sub(r"[^\w]", "", value.strip().lstrip("#"))
    return f"#{body}" if body else ""


def backfill_hashtags(
    report: ScoreReport,
    topics: Iterable[str],
    min_count: int = 3,
    max_count: int = 10,
) -> ScoreReport:
    """
    Normalise hashtags and, when fewer than ``min_count``, top them up from topics.

    The count that decides on backfill is taken after normalisation, so
    duplicates and tags with no usable characters do not count. Duplicates
    are dropped case-insensitively and the result is capped at ``max_count``.
    """
    seen = set()
    hashtags: List[str] = []

    def add(candidates: Iterable[str]) -> None:
        for candidate in candidates:
            if len(hashtags) >= max_count:
                return
            tag = _hashtag(candidate)
            if tag and tag.lower() not in seen:
                seen.add(tag.lower())
                hashtags.append(tag)

    add(report.metadata.hashtags)
    if len(hashtags) < min_count:
        add(topics)

    metadata = report.metadata.model_copy(update={"hashtags": hashtags})
    return report.model_copy(update={"metadata": metadata})


class ScoringValidator:
    """
    Calls the generative scoring service and turns its answer into a ScoreReport.

    Parse or validation failures never raise: the deterministic default report
    is returned with ``degraded=True``. Failures of the remote call itself,
    once retries are exhausted, do propagate.
    """

    def __init__(
        self,
        llm_provider: LLMProvider,
        executor: RetryExecutor,
        temperature: float = 0.2,
        stream: bool = True,
        min_hashtags: int = 3,
        max_hashtags: int = 10,
    ):
        self.llm_provider = llm_provider
        self.executor = executor
        self.temperature = temperature
        self.stream = stream
        self.min_hashtags = min_hashtags
        self.max_hashtags = max_hashtags

    async def score(
        self,
        request: ScoringRequest,
        topics: Sequence[str] = (),
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> ScoreReport:
        text = await self.executor.run(
            lambda: self._generate(request, on_progress),
            description="scoring request",
        )
        report = self.validate(text, request.metrics)
        return backfill_hashtags(report, topics, self.min_hashtags, self.max_hashtags)

    async def _generate(self, request: ScoringRequest, on_progress: Optional[Callable[[float], None]]) -> str:
        kwargs = {"temperature": self.temperature, "response_format": request.response_format}
        if not self.stream:
            response = await self.llm_provider.chat_completion(request.messages, **kwargs)
            return response.get("content") or ""

        chunks: List[str] = []
        progress = GENERATION_START
        async for chunk in self.llm_provider.stream_chat_completion(request.messages, **kwargs):
            chunks.append(chunk)
            # Tick every second chunk, never reaching completion early
            if on_progress is not None and len(chunks) % 2 == 0 and progress + GENERATION_STEP < GENERATION_CAP:
                progress = round(progress + GENERATION_STEP, 2)
                on_progress(progress)
        return "".join(chunks)

    def validate(self, text: str, metrics: Sequence[ScoringMetric]) -> ScoreReport:
        try:
            payload = json.loads(strip_code_fences(text or ""))
            if not isinstance(payload, dict):
                raise ValueError("scoring response is not a JSON object")
            report = ScoreReport.model_validate(payload)
        except (json.JSONDecodeError, ValidationError, ValueError) as e:
            logger.warning(f"Scoring response failed validation, using default report: {e}")
            return default_report(metrics)

        scored_keys = {score.key for score in report.scores}
        missing = [m.key for m in metrics if m.key not in scored_keys]
        if missing:
            logger.warning(f"Scoring response is missing metrics {missing}, using default report")
            return default_report(metrics)

        return report.model_copy(update={"degraded": False})
