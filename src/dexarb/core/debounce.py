"""
Debounce Scheduler
==================
Per-asset delayed execution. Each `schedule` call for an asset replaces the
pending timer, so a burst of updates collapses into one task run `delay_ms`
after the last call.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Optional, Set

from dexarb.system.logging import Logger

DebouncedTask = Callable[[], Awaitable[None]]


class DebounceScheduler:
    """At most one pending timer per asset, built on loop.call_later."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._running: Set[asyncio.Task] = set()
        self.fired = 0
        self.coalesced = 0

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, asset: str, delay_ms: float, task: DebouncedTask) -> None:
        """Run `task` once, delay_ms after the last schedule() for this asset."""
        previous = self._timers.pop(asset, None)
        if previous is not None:
            previous.cancel()
            self.coalesced += 1
            Logger.debug(f"[DEBOUNCE] {asset[:8]} timer reset ({self.coalesced} coalesced)")

        loop = self._get_loop()
        self._timers[asset] = loop.call_later(max(delay_ms, 0) / 1000, self._fire, asset, task)

    def cancel(self, asset: str) -> bool:
        """Cancel the pending timer; no-op if it already fired or never existed."""
        handle = self._timers.pop(asset, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def pending(self, asset: str) -> bool:
        return asset in self._timers

    @property
    def pending_count(self) -> int:
        return len(self._timers)

    def _fire(self, asset: str, task: DebouncedTask) -> None:
        # Unregister before running so a later cancel() is a no-op
        self._timers.pop(asset, None)
        self.fired += 1
        running = self._get_loop().create_task(self._run(asset, task))
        self._running.add(running)
        running.add_done_callback(self._running.discard)

    async def _run(self, asset: str, task: DebouncedTask) -> None:
        try:
            await task()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            Logger.error(f"[DEBOUNCE] Task for {asset[:8]} failed: {e}")

    async def drain(self, poll_s: float = 0.01) -> None:
        """Wait until every pending timer has fired and its task finished."""
        while self._timers or self._running:
            if self._running:
                await asyncio.gather(*list(self._running), return_exceptions=True)
            else:
                await asyncio.sleep(poll_s)

    async def close(self) -> None:
        """Cancel pending timers and running tasks."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

        running = list(self._running)
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
