import asyncio
import os

import pytest

from vidscore.config.settings import PipelineConfig
from vidscore.exceptions import (
    ExtractionTimeoutException,
    IndexingFailedException,
    ProviderException,
    ValidationException,
)
from vidscore.utils.validation import AnalyzeVideoRequest
from vidscore.video_pipeline.core.indexing import IndexRegistry
from vidscore.video_pipeline.core.models import (
    EventKind,
    ScoringMetric,
    SearchMatch,
    TaskStatus,
    TaskStatusReport,
    TranscriptSegment,
)
from vidscore.video_pipeline.pipeline import AnalysisPipeline
from conftest import FakeLLMProvider, FakeVideoProvider, RecordingSleep


def pipeline_config(**overrides):
    values = dict(
        retry_attempts=3,
        retry_initial_delay=1.0,
        poll_interval=2.0,
        poll_max_attempts=60,
        analysis_mode="split",
        extraction_timeout=None,
        stream_scoring=True,
        delete_remote_video=True,
    )
    values.update(overrides)
    return PipelineConfig(**values)


def fitness_provider():
    return FakeVideoProvider(
        statuses=[
            TaskStatusReport(TaskStatus.QUEUED),
            TaskStatusReport(TaskStatus.PROCESSING, video_id="vid-1"),
            TaskStatusReport(TaskStatus.READY, video_id="vid-1", duration=10.0),
        ],
        search_results={"lighting": [SearchMatch(0.0, 2.0, 60.0)]},
        transcript=[
            TranscriptSegment(0.0, 2.0, "today we squat"),
            TranscriptSegment(2.5, 4.0, "keep your chest up"),
            TranscriptSegment(7.0, 9.5, "and drive through your heels"),
        ],
        topics=["fitness", "squat", "legday", "gym"],
    )


def build(provider, llm=None, **config):
    return AnalysisPipeline(
        provider,
        llm or FakeLLMProvider(),
        config=pipeline_config(**config),
        sleep=RecordingSleep(),
    )


async def collect(pipeline, request):
    events = [event async for event in pipeline.stream(request)]
    await pipeline.wait_idle()
    return events


def test_fitness_video_end_to_end(video_file):
    provider = fitness_provider()
    llm = FakeLLMProvider()
    pipeline = build(provider, llm)
    request = AnalyzeVideoRequest(video_path=video_file, niche="fitness")

    events = asyncio.run(collect(pipeline, request))

    final = events[-1]
    assert final.kind is EventKind.COMPLETE
    report = final.report
    assert report.degraded is False
    assert any("pacing" in w.title.lower() for w in report.weaknesses)
    assert 3 <= len(report.metadata.hashtags) <= 10
    assert {s.key for s in report.scores} == {"potential", "hook"}

    prompt = llm.requests[0][1]["content"]
    assert "1 dead air gap(s)" in prompt
    assert "Technical defects: none detected" in prompt

    # niche came from the caller, so only the three analysis queries hit describe
    assert provider.count("describe_video") == 3
    assert not os.path.exists(video_file)
    assert provider.deleted == [("idx-1", "vid-1")]


def test_progress_is_monotonic_with_single_terminal_event(video_file):
    events = asyncio.run(collect(build(fitness_provider()), AnalyzeVideoRequest(video_path=video_file)))

    fractions = [e.fraction for e in events]
    assert fractions == sorted(fractions)
    assert fractions[0] == 0.1
    assert [e.is_terminal for e in events].count(True) == 1
    assert events[-1].fraction == 1.0
    messages = [e.message for e in events]
    assert "Processing video" in messages
    assert "Drafting report" in messages


def test_missing_asset_is_rejected_before_remote_calls(tmp_path):
    provider = FakeVideoProvider()
    pipeline = build(provider)

    with pytest.raises(ValidationException):
        asyncio.run(pipeline.analyze(AnalyzeVideoRequest(video_path=str(tmp_path / "nope.mp4"))))
    assert provider.calls == []


def test_indexing_failure_ends_with_error_event_and_cleanup(video_file):
    provider = FakeVideoProvider(statuses=[
        TaskStatusReport(TaskStatus.PROCESSING, video_id="vid-3"),
        TaskStatusReport(TaskStatus.FAILED, video_id="vid-3", error="bad codec"),
    ])

    events = asyncio.run(collect(build(provider), AnalyzeVideoRequest(video_path=video_file)))

    assert events[-1].kind is EventKind.ERROR
    assert "bad codec" in events[-1].message
    assert not os.path.exists(video_file)
    assert provider.deleted == [("idx-1", "vid-3")]


def test_scoring_failure_still_cleans_up(video_file):
    provider = fitness_provider()
    llm = FakeLLMProvider([ProviderException("overloaded", status_code=503)])
    pipeline = build(provider, llm)

    with pytest.raises(ProviderException):
        asyncio.run(pipeline.analyze(AnalyzeVideoRequest(video_path=video_file)))

    assert not os.path.exists(video_file)


def test_unparseable_scoring_completes_degraded(video_file):
    pipeline = build(fitness_provider(), FakeLLMProvider(["I cannot score this video."]))

    report = asyncio.run(pipeline.analyze(AnalyzeVideoRequest(video_path=video_file)))

    assert report.degraded is True
    assert report.overall == 50
    # hashtags backfilled from topics even for the default report
    assert report.metadata.hashtags[:2] == ["#fitness", "#squat"]


def test_unexpected_errors_are_reported_generically(video_file):
    class Exploding(FakeVideoProvider):
        async def get_transcript(self, index_id, video_id):
            raise KeyError("internal detail")

    pipeline = build(Exploding(), retry_attempts=1)

    events = asyncio.run(collect(pipeline, AnalyzeVideoRequest(video_path=video_file)))

    assert events[-1].kind is EventKind.ERROR
    assert events[-1].message == "Internal Server Error"


def test_custom_metrics_reach_the_report(video_file):
    request = AnalyzeVideoRequest(
        video_path=video_file,
        metrics=[ScoringMetric(key="humor", name="Humor", context="Is it funny?")],
    )

    report = asyncio.run(build(fitness_provider()).analyze(request))

    assert [s.key for s in report.scores] == ["humor"]


def test_registry_is_shared_across_runs(tmp_path):
    provider = fitness_provider()
    registry = IndexRegistry(provider)
    pipeline = AnalysisPipeline(
        provider, FakeLLMProvider(), registry=registry, config=pipeline_config(), sleep=RecordingSleep()
    )

    async def two_runs():
        for name in ("a.mp4", "b.mp4"):
            path = tmp_path / name
            path.write_bytes(b"video")
            provider.statuses = [TaskStatusReport(TaskStatus.READY, video_id=f"vid-{name}", duration=10.0)]
            await pipeline.analyze(AnalyzeVideoRequest(video_path=str(path)))
        await pipeline.wait_idle()

    asyncio.run(two_runs())

    assert provider.count("create_index") == 1
    assert provider.count("list_indexes") == 1


def test_consumer_disconnect_lets_run_finish(video_file):
    provider = fitness_provider()
    pipeline = build(provider)

    async def scenario():
        stream = pipeline.stream(AnalyzeVideoRequest(video_path=video_file))
        first = await stream.__anext__()
        await stream.aclose()
        await pipeline.wait_idle()
        return first

    first = asyncio.run(scenario())

    assert first.fraction == 0.1
    assert provider.count("get_transcript") == 1
    assert not os.path.exists(video_file)


def test_unsupported_content_type_falls_back_to_mp4(video_file):
    provider = fitness_provider()

    asyncio.run(build(provider).analyze(AnalyzeVideoRequest(video_path=video_file, content_type="video/x-unknown")))

    assert provider.count("create_indexing_task") == 1


def test_indexing_failure_raises_from_analyze(video_file):
    provider = FakeVideoProvider(statuses=[TaskStatusReport(TaskStatus.FAILED, error="nope")])

    with pytest.raises(IndexingFailedException):
        asyncio.run(build(provider).analyze(AnalyzeVideoRequest(video_path=video_file)))


class SlowDescribeProvider(FakeVideoProvider):
    """Describe calls take real time; tracks how many are in flight."""

    def __init__(self, describe_delay=0.05, **kwargs):
        super().__init__(**kwargs)
        self.describe_delay = describe_delay
        self.asset_path = None
        self.in_flight = 0
        self.peak_in_flight = 0
        self.describes_finished = 0
        self.asset_seen_by_describe = []
        self.in_flight_at_delete = None

    async def create_indexing_task(self, index_id, asset):
        self.asset_path = asset.path
        return await super().create_indexing_task(index_id, asset)

    async def _timed(self, call):
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            return await call
        finally:
            self.in_flight -= 1

    async def semantic_search(self, index_id, query, video_id):
        return await self._timed(super().semantic_search(index_id, query, video_id))

    async def get_topics(self, index_id, video_id):
        return await self._timed(super().get_topics(index_id, video_id))

    async def describe_video(self, index_id, video_id, instruction):
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.describe_delay)
            self.asset_seen_by_describe.append(os.path.exists(self.asset_path))
            self.describes_finished += 1
            return await super().describe_video(index_id, video_id, instruction)
        finally:
            self.in_flight -= 1

    async def delete_video(self, index_id, video_id):
        self.in_flight_at_delete = self.in_flight
        return await super().delete_video(index_id, video_id)


def test_failing_sibling_waits_for_pending_extraction_before_cleanup(video_file):
    class TranscriptFails(SlowDescribeProvider):
        async def get_transcript(self, index_id, video_id):
            raise KeyError("transcript store offline")

    provider = TranscriptFails(topics=["fitness"])
    pipeline = build(provider, retry_attempts=1)

    events = asyncio.run(collect(pipeline, AnalyzeVideoRequest(video_path=video_file, niche="fitness")))

    assert events[-1].kind is EventKind.ERROR
    # the three analysis queries were still sleeping when the transcript failed
    assert provider.describes_finished == 3
    assert provider.asset_seen_by_describe == [True, True, True]
    assert provider.in_flight_at_delete == 0
    assert provider.deleted == [("idx-1", "vid-1")]
    assert not os.path.exists(video_file)


def test_extraction_runs_agents_concurrently(video_file):
    provider = SlowDescribeProvider(describe_delay=0.02, topics=["fitness", "gym", "squat"])

    report = asyncio.run(build(provider).analyze(AnalyzeVideoRequest(video_path=video_file, niche="fitness")))

    assert report.degraded is False
    # defect queries, topics and the three analysis queries overlap
    assert provider.peak_in_flight >= 5
    assert provider.in_flight == 0


def test_extraction_timeout_raises_and_cleans_up(video_file):
    provider = SlowDescribeProvider(describe_delay=10)

    with pytest.raises(ExtractionTimeoutException):
        asyncio.run(build(provider, extraction_timeout=0.05).analyze(AnalyzeVideoRequest(video_path=video_file)))

    assert not os.path.exists(video_file)
    assert provider.describes_finished == 0
    assert provider.in_flight == 0


def test_extraction_timeout_ends_stream_with_error(video_file):
    provider = SlowDescribeProvider(describe_delay=10)
    pipeline = build(provider, extraction_timeout=0.05)

    events = asyncio.run(collect(pipeline, AnalyzeVideoRequest(video_path=video_file)))

    assert events[-1].kind is EventKind.ERROR
    assert "did not finish within 0.05s" in events[-1].message
    assert [e.is_terminal for e in events].count(True) == 1
    assert not os.path.exists(video_file)
    assert provider.deleted == [("idx-1", "vid-1")]


def test_polling_progress_stays_below_extraction(video_file):
    statuses = [TaskStatusReport(TaskStatus.PROCESSING, video_id="vid-1") for _ in range(12)]
    statuses.append(TaskStatusReport(TaskStatus.READY, video_id="vid-1", duration=10.0))
    provider = FakeVideoProvider(statuses=statuses)

    events = asyncio.run(collect(build(provider), AnalyzeVideoRequest(video_path=video_file)))

    messages = [e.message for e in events]
    extracting = messages.index("Extracting signals")
    assert events[extracting].fraction == 0.6
    polling = [e.fraction for e in events[:extracting] if e.message.startswith("Processing video (")]
    assert len(set(polling)) > 1
    assert max(polling) < 0.6
    assert [e.fraction for e in events] == sorted(e.fraction for e in events)
