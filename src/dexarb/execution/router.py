"""
Executor Router
===============
Routes a TradeRequest to the executor registered for its buy venue, and a
paper backend that simulates fills without signing anything.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Dict, List, Optional

from solders.signature import Signature

from dexarb.feeds.price_update import Venue
from dexarb.system.logging import Logger
from .types import TradeExecutor, TradeRequest, TradeResult


class ExecutorRouter:
    """Dispatch by `request.buy_venue`; never raises into the caller."""

    def __init__(self, executors: Optional[Dict[Venue, TradeExecutor]] = None) -> None:
        self._executors: Dict[Venue, TradeExecutor] = dict(executors or {})

    def register(self, venue: Venue, executor: TradeExecutor) -> None:
        self._executors[venue] = executor

    def venues(self) -> List[Venue]:
        return list(self._executors)

    async def execute(self, request: TradeRequest) -> TradeResult:
        executor = self._executors.get(request.buy_venue)
        if executor is None:
            return TradeResult.failed(f"No executor registered for {request.buy_venue.value}")

        start = time.perf_counter()
        try:
            result = await executor.execute(request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            result = TradeResult.failed(f"{type(e).__name__}: {e}")
        result.latency_ms = (time.perf_counter() - start) * 1000
        return result


class PaperExecutor:
    """
    Simulated executor.

    Succeeds with a fake signature after `latency_s`, failing at
    `failure_rate`.
    """

    def __init__(self, venue: Venue, latency_s: float = 0.05, failure_rate: float = 0.0, seed: int = None):
        self.venue = venue
        self.latency_s = latency_s
        self.failure_rate = failure_rate
        self._rng = random.Random(seed)
        self.history: List[TradeRequest] = []

    async def execute(self, request: TradeRequest) -> TradeResult:
        self.history.append(request)
        if self.latency_s > 0:
            await asyncio.sleep(self.latency_s)

        if self._rng.random() < self.failure_rate:
            return TradeResult.failed(f"Simulated {self.venue.label} swap failure")

        signature = Signature(bytes(self._rng.getrandbits(8) for _ in range(64)))
        Logger.info(f"[TRADE] 📝 Paper fill {request.describe()}")
        return TradeResult(success=True, tx_id=str(signature))


def paper_router(latency_s: float = 0.05, failure_rate: float = 0.0) -> ExecutorRouter:
    """Router with a PaperExecutor on every venue."""
    return ExecutorRouter({
        venue: PaperExecutor(venue, latency_s=latency_s, failure_rate=failure_rate)
        for venue in Venue
    })
