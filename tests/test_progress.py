from __future__ import annotations

import asyncio

import pytest

from mediavault.ingest.progress import ProgressTracker


def test_snapshot_is_read_only_copy():
    tracker = ProgressTracker()
    tracker.start("content://a")
    tracker.update("content://a", 0.5)
    snapshot = tracker.snapshot()

    tracker.update("content://a", 0.75)

    assert snapshot["content://a"] == 0.5
    assert tracker.get("content://a") == 0.75
    with pytest.raises(TypeError):
        snapshot["content://a"] = 1.0  # type: ignore[index]


def test_values_are_clamped():
    tracker = ProgressTracker()
    tracker.update("x", 1.7)
    tracker.update("y", -0.2)
    assert tracker.snapshot() == {"x": 1.0, "y": 0.0}


def test_finish_removes_entry():
    tracker = ProgressTracker()
    tracker.start("x")
    tracker.finish("x")
    tracker.finish("x")
    assert len(tracker) == 0
    assert tracker.get("x") is None


def test_watch_streams_changes():
    tracker = ProgressTracker()

    async def scenario():
        stream = tracker.watch()
        first = await stream.__anext__()
        updates = []
        for change in (lambda: tracker.start("clip"), lambda: tracker.update("clip", 0.25), lambda: tracker.finish("clip")):
            change()
            updates.append(await stream.__anext__())
        await stream.aclose()
        return first, updates

    first, updates = asyncio.run(scenario())

    assert dict(first) == {}
    assert [dict(u) for u in updates] == [{"clip": 0.0}, {"clip": 0.25}, {}]


def test_slow_watcher_only_keeps_latest_state():
    tracker = ProgressTracker()

    async def scenario():
        stream = tracker.watch()
        await stream.__anext__()
        tracker.start("clip")
        for step in range(1, 101):
            tracker.update("clip", step / 100)
        latest = await stream.__anext__()
        tracker.finish("clip")
        after = await stream.__anext__()
        await stream.aclose()
        return latest, after

    latest, after = asyncio.run(scenario())

    assert dict(latest) == {"clip": 1.0}
    assert dict(after) == {}
