import asyncio
import os

from vidscore.video_pipeline.core.models import (
    EventKind,
    ReportMetadata,
    ScoreReport,
    VideoAsset,
)
from vidscore.video_pipeline.core.progress import ProgressChannel
from vidscore.video_pipeline.core.reaper import ResourceReaper
from conftest import FakeVideoProvider


def small_report():
    return ScoreReport(overall=70, scores=[], strengths=[], weaknesses=[], tips=[], metadata=ReportMetadata())


def test_fractions_never_decrease_and_stay_in_range():
    channel = ProgressChannel(keep_history=True)
    channel.progress("upload", 0.1)
    channel.progress("processing", 0.05)
    channel.progress("odd", 7)
    channel.complete(small_report())

    fractions = [event.fraction for event in channel.history]
    assert fractions == [0.1, 0.1, 1.0, 1.0]


def test_exactly_one_terminal_event():
    channel = ProgressChannel(keep_history=True)
    channel.progress("upload", 0.1)
    channel.fail("Video processing failed")
    channel.complete(small_report())
    channel.progress("late", 0.9)

    kinds = [event.kind for event in channel.history]
    assert kinds == [EventKind.PROGRESS, EventKind.ERROR]
    assert channel.closed


def test_iteration_stops_after_terminal_event():
    async def scenario():
        channel = ProgressChannel()
        channel.progress("upload", 0.1)
        channel.complete(small_report())
        return [event async for event in channel]

    events = asyncio.run(scenario())
    assert [e.kind for e in events] == [EventKind.PROGRESS, EventKind.COMPLETE]
    assert events[-1].to_dict()["result"]["overall"] == 70
    assert events[-1].to_sse().startswith('data: {"type": "complete"')


def test_detached_channel_drops_events():
    channel = ProgressChannel()
    channel.detach()
    channel.progress("upload", 0.1)

    assert channel._queue.empty()
    assert channel.fraction == 0.1


def test_reaper_removes_local_asset_when_body_raises(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"video")
    provider = FakeVideoProvider()

    async def scenario():
        reaper = ResourceReaper(VideoAsset(str(path)), provider)
        try:
            async with reaper:
                reaper.track_remote("idx-1", "vid-1")
                raise RuntimeError("scoring blew up")
        except RuntimeError as e:
            await reaper.wait_closed()
            return e

    error = asyncio.run(scenario())

    assert str(error) == "scoring blew up"
    assert not os.path.exists(path)
    assert provider.deleted == [("idx-1", "vid-1")]


def test_reaper_swallows_remote_delete_failure(tmp_path):
    provider = FakeVideoProvider()
    provider.fail_delete = True

    async def scenario():
        reaper = ResourceReaper(VideoAsset(str(tmp_path / "gone.mp4")), provider)
        async with reaper:
            reaper.track_remote("idx-1", "vid-1")
        await reaper.wait_closed()
        return "done"

    assert asyncio.run(scenario()) == "done"


def test_reaper_skips_remote_delete_when_disabled(tmp_path):
    provider = FakeVideoProvider()

    async def scenario():
        async with ResourceReaper(VideoAsset(str(tmp_path / "gone.mp4")), provider, delete_remote=False) as reaper:
            reaper.track_remote("idx-1", "vid-1")
        await reaper.wait_closed()

    asyncio.run(scenario())
    assert provider.deleted == []
