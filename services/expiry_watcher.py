"""
Background enforcement of session expiry.

One watcher per session authority. start() (re)arms a periodic asyncio task
that polls the session predicate; when it turns false the expiry callback
runs once and the task ends. stop() cancels the task, except when called
from inside the task itself (the callback signing out), in which case the
loop simply returns afterwards.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from shared.logging import get_logger

log = get_logger(__name__)


class SessionExpiryWatcher:
    def __init__(
        self,
        is_valid: Callable[[], bool],
        on_expired: Callable[[], Awaitable[None]],
        interval_seconds: float = 60.0,
    ) -> None:
        self._is_valid = is_valid
        self._on_expired = on_expired
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            return
        task.cancel()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if self._is_valid():
                continue
            log.info("session_expired")
            try:
                await self._on_expired()
            except Exception as e:
                # No caller to report to from a background task
                log.error(
                    "session_expiry_signout_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
            return
