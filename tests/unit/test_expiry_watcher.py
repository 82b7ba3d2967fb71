"""Unit tests for the background session expiry watcher."""

import asyncio

from services.expiry_watcher import SessionExpiryWatcher


async def _wait_until(predicate, attempts=100):
    for _ in range(attempts):
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


class TestSessionExpiryWatcher:
    async def test_fires_once_when_session_lapses(self):
        state = {"valid": True, "fired": 0}

        async def on_expired():
            state["fired"] += 1

        watcher = SessionExpiryWatcher(lambda: state["valid"], on_expired, 0.01)
        watcher.start()
        await asyncio.sleep(0.03)
        assert state["fired"] == 0

        state["valid"] = False
        assert await _wait_until(lambda: state["fired"] == 1)
        await asyncio.sleep(0.03)
        assert state["fired"] == 1
        assert not watcher.running

    async def test_stop_cancels_pending_check(self):
        fired = []

        async def on_expired():
            fired.append(True)

        watcher = SessionExpiryWatcher(lambda: False, on_expired, 0.05)
        watcher.start()
        assert watcher.running
        watcher.stop()
        await asyncio.sleep(0.1)
        assert fired == []
        assert not watcher.running

    async def test_restart_replaces_previous_task(self):
        watcher = SessionExpiryWatcher(lambda: True, asyncio.sleep, 0.01)
        watcher.start()
        first = watcher._task
        watcher.start()
        await asyncio.sleep(0)
        assert first.cancelled() or first.done()
        assert watcher.running
        watcher.stop()

    async def test_callback_may_stop_its_own_watcher(self):
        done = asyncio.Event()
        watcher = None

        async def on_expired():
            watcher.stop()
            done.set()

        watcher = SessionExpiryWatcher(lambda: False, on_expired, 0.01)
        watcher.start()
        await asyncio.wait_for(done.wait(), timeout=1)
        assert not watcher.running

    async def test_callback_failure_is_contained(self):
        calls = []

        async def on_expired():
            calls.append(True)
            raise RuntimeError("store down")

        watcher = SessionExpiryWatcher(lambda: False, on_expired, 0.01)
        watcher.start()
        task = watcher._task
        assert await _wait_until(task.done)
        assert calls == [True]
        assert task.exception() is None

    def test_stop_without_start_is_noop(self):
        watcher = SessionExpiryWatcher(lambda: True, asyncio.sleep, 0.01)
        watcher.stop()
        assert not watcher.running
