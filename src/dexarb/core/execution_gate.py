"""
Execution Gate
==============
Per-asset mutual exclusion for trade dispatch.

    FREE --try_acquire--> HELD --release / hold timeout--> COOLING --cooldown--> FREE

Only one caller can hold an asset at a time, and a released asset stays
blocked for `cooldown_ms` so noisy prices cannot retrigger it immediately.
`try_acquire` returns the GateHold it created; releasing with a hold that is
no longer current (auto-released, cooled down, re-acquired) does nothing.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from dexarb.system.logging import Logger


class LockState(str, Enum):
    FREE = "FREE"
    HELD = "HELD"
    COOLING = "COOLING"


@dataclass(eq=False)
class GateHold:
    """One acquisition of an asset; compared by identity."""
    asset: str
    state: LockState = LockState.HELD
    timer: Optional[asyncio.TimerHandle] = None


class ExecutionGate:
    """
    try_acquire is synchronous so check-and-set cannot be interleaved by
    another coroutine; there is no await between the two.
    """

    def __init__(
        self,
        cooldown_ms: int = 10_000,
        hold_timeout_ms: int = 60_000,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.cooldown_ms = cooldown_ms
        self.hold_timeout_ms = hold_timeout_ms
        self._loop = loop
        self._locks: Dict[str, GateHold] = {}

        # Stats
        self.acquired = 0
        self.rejected = 0
        self.timeouts = 0

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def try_acquire(self, asset: str) -> Optional[GateHold]:
        """Take the asset lock; None if held or cooling down."""
        if asset in self._locks:
            self.rejected += 1
            return None

        hold = GateHold(asset=asset)
        if self.hold_timeout_ms > 0:
            hold.timer = self._get_loop().call_later(
                self.hold_timeout_ms / 1000, self._on_hold_timeout, hold
            )
        self._locks[asset] = hold
        self.acquired += 1
        return hold

    def release(self, asset: str, hold: Optional[GateHold] = None) -> None:
        """
        Start the cooldown for the current hold on `asset`.

        With `hold`, only that acquisition is released; a stale hold is a
        no-op. Idempotent: no-op if cooling or not locked.
        """
        current = self._locks.get(asset)
        if current is None or current.state is not LockState.HELD:
            return
        if hold is not None and hold is not current:
            Logger.debug(f"[GATE] {asset[:8]} stale release ignored")
            return

        if current.timer is not None:
            current.timer.cancel()
        if self.cooldown_ms <= 0:
            del self._locks[asset]
            return

        current.state = LockState.COOLING
        current.timer = self._get_loop().call_later(self.cooldown_ms / 1000, self._expire, current)

    def state(self, asset: str) -> LockState:
        lock = self._locks.get(asset)
        return lock.state if lock else LockState.FREE

    def is_locked(self, asset: str) -> bool:
        return asset in self._locks

    def locked_assets(self) -> List[str]:
        return list(self._locks)

    def _on_hold_timeout(self, hold: GateHold) -> None:
        if self._locks.get(hold.asset) is not hold or hold.state is not LockState.HELD:
            return
        self.timeouts += 1
        hold.timer = None
        Logger.warning(f"[GATE] {hold.asset[:8]} held past {self.hold_timeout_ms}ms, releasing")
        self.release(hold.asset, hold)

    def _expire(self, hold: GateHold) -> None:
        # Only drop the entry this timer was armed for
        if self._locks.get(hold.asset) is hold:
            del self._locks[hold.asset]

    def close(self) -> None:
        for lock in self._locks.values():
            if lock.timer is not None:
                lock.timer.cancel()
        self._locks.clear()
