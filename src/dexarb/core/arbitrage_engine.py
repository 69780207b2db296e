"""
Arbitrage Engine
================
Receives price updates from every venue listener, keeps the opportunity
store current, and decides when a divergence is new enough to report and
large enough to trade.

Per-asset flow:
    update -> [asset lock] snapshot, upsert
           -> refresh pairing?  yes: debounce(refresh paired venue, evaluate)
                                no:  evaluate now
    evaluate -> real change? -> reporter -> divergence > threshold? -> gate -> executor
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, asdict
from functools import partial
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set, Union

from dexarb.config.settings import ArbitrageConfig
from dexarb.core.debounce import DebounceScheduler
from dexarb.core.execution_gate import ExecutionGate, GateHold
from dexarb.core.opportunity_store import (
    DataState,
    Opportunity,
    OpportunitySnapshot,
    OpportunityStore,
)
from dexarb.execution.types import TradeExecutor, TradeRequest, TradeResult
from dexarb.feeds.price_update import PriceUpdate, Venue, utc_now
from dexarb.feeds.quote_fetcher import QuoteFetcher
from dexarb.feeds.venue_events import SwapEvent, event_from_dict, normalize, parse_price, resolve_venue
from dexarb.system.logging import Logger

if TYPE_CHECKING:
    from dexarb.monitoring.reporter import Reporter

InboundEvent = Union[PriceUpdate, SwapEvent, Dict[str, Any], None]


@dataclass
class EngineStats:
    updates_received: int = 0
    updates_discarded: int = 0
    refreshes: int = 0
    refresh_failures: int = 0
    refreshes_superseded: int = 0
    real_changes: int = 0
    trades_dispatched: int = 0
    trades_succeeded: int = 0
    trades_failed: int = 0
    trades_skipped_locked: int = 0
    evicted: int = 0


class ArbitrageEngine:
    """
    Orchestrator for cross-venue detection and gated execution.

    Mutations for one asset are serialized by a per-asset asyncio.Lock;
    different assets never contend.
    """

    def __init__(
        self,
        store: OpportunityStore,
        scheduler: DebounceScheduler,
        gate: ExecutionGate,
        reporter: Optional[Reporter] = None,
        executor: Optional[TradeExecutor] = None,
        quote_fetcher: Optional[QuoteFetcher] = None,
        config: Optional[ArbitrageConfig] = None,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.gate = gate
        self.reporter = reporter
        self.executor = executor
        self.quote_fetcher = quote_fetcher
        self.config = config or ArbitrageConfig()

        self._asset_locks: Dict[str, asyncio.Lock] = {}
        # Snapshot taken before the first update of a debounced burst
        self._burst_baselines: Dict[str, OpportunitySnapshot] = {}
        self._trades: Set[asyncio.Task] = set()
        self.stats = EngineStats()

    # =========================================================================
    # INBOUND
    # =========================================================================

    async def on_venue_update(self, venue: Union[Venue, str], event: InboundEvent) -> Optional[Opportunity]:
        """
        Apply one venue event.

        Accepts a PriceUpdate, a decoded venue event, or a raw JSON record.
        Events without a usable asset are dropped silently.
        """
        update = self._to_update(venue, event)
        if update is None:
            self.stats.updates_discarded += 1
            return None

        self.stats.updates_received += 1
        asset = update.asset

        async with self._lock_for(asset):
            existing = self.store.get(asset)
            before = existing.snapshot() if existing else OpportunitySnapshot.empty()

            opportunity = self.store.upsert(
                asset, update.venue, update.price, update.pool_id, update.observed_at
            )

            paired = self.config.refresh_pairings.get(update.venue)
            if paired is not None and paired in opportunity.venue_prices:
                self._burst_baselines.setdefault(asset, before)
                self.scheduler.schedule(
                    asset,
                    self.config.debounce_delay_ms,
                    partial(self._refresh_and_evaluate, asset, paired),
                )
                return opportunity

            self._evaluate(opportunity, before)
            return opportunity

    def _to_update(self, venue: Union[Venue, str], event: InboundEvent) -> Optional[PriceUpdate]:
        if event is None:
            return None
        try:
            venue = resolve_venue(venue)
        except ValueError:
            Logger.warning(f"[ENGINE] Update from unknown venue {venue!r} ignored")
            return None

        if isinstance(event, dict):
            try:
                event = event_from_dict(venue, event)
            except (ValueError, TypeError):
                return None
        if isinstance(event, SwapEvent):
            event = normalize(event)
            if event is None:
                return None

        if not isinstance(event, PriceUpdate) or not event.asset:
            return None
        if event.venue is not venue:
            Logger.warning(
                f"[ENGINE] {event.venue.value} update delivered on {venue.value} listener, ignored"
            )
            return None
        return event

    def _lock_for(self, asset: str) -> asyncio.Lock:
        lock = self._asset_locks.get(asset)
        if lock is None:
            lock = asyncio.Lock()
            self._asset_locks[asset] = lock
        return lock

    # =========================================================================
    # DEBOUNCED REFRESH
    # =========================================================================

    async def _refresh_and_evaluate(self, asset: str, paired: Venue) -> None:
        """Re-read the paired venue's price once per burst, then evaluate."""
        baseline = self._burst_baselines.pop(asset, None) or OpportunitySnapshot.empty()
        self.stats.refreshes += 1

        opportunity = self.store.get(asset)
        if opportunity is None:
            return
        pool_id = opportunity.venue_pool_ids.get(paired, "")
        # Paired venue state at fetch start
        seen = (opportunity.venue_updated_at.get(paired), opportunity.venue_prices.get(paired))

        fresh = None
        if self.quote_fetcher is not None and pool_id:
            try:
                fresh = await self.quote_fetcher.fetch_price(paired, asset, pool_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                Logger.warning(f"[ENGINE] {paired.label} refresh for {asset[:8]} failed: {e}")
            fresh = parse_price(fresh)
            if fresh is None:
                self.stats.refresh_failures += 1
                Logger.warning(
                    f"[ENGINE] No fresh {paired.label} price for {asset[:8]}, keeping last known"
                )

        async with self._lock_for(asset):
            opportunity = self.store.get(asset)
            if opportunity is None:
                return
            current = (opportunity.venue_updated_at.get(paired), opportunity.venue_prices.get(paired))
            if fresh is not None and current != seen:
                self.stats.refreshes_superseded += 1
                Logger.debug(f"[ENGINE] {paired.label} ticked during refresh for {asset[:8]}, keeping tick")
            elif fresh is not None:
                opportunity = self.store.upsert(asset, paired, fresh, pool_id, utc_now())
            self._evaluate(opportunity, baseline)

    # =========================================================================
    # CHANGE DETECTION & EXECUTION
    # =========================================================================

    def _evaluate(self, opportunity: Opportunity, before: OpportunitySnapshot) -> bool:
        """Report and maybe trade; False when nothing material changed."""
        if not opportunity.snapshot().differs_from(before):
            return False

        self.stats.real_changes += 1
        if self.reporter is not None:
            self.reporter.on_opportunity_changed(opportunity)
        self._maybe_execute(opportunity)
        return True

    def _maybe_execute(self, opportunity: Opportunity) -> None:
        pct = opportunity.divergence_percent
        if pct is None or pct <= self.config.min_divergence_percent:
            return
        if self.executor is None:
            return

        pair = opportunity.best_pair()
        if pair is None:
            return
        hold = self.gate.try_acquire(opportunity.asset)
        if hold is None:
            self.stats.trades_skipped_locked += 1
            Logger.debug(f"[GATE] {opportunity.asset[:8]} locked ({self.gate.state(opportunity.asset).value}), skip")
            return

        buy_venue, sell_venue = pair
        request = TradeRequest(
            asset=opportunity.asset,
            buy_venue=buy_venue,
            sell_venue=sell_venue,
            amount=self.config.trade_amount,
            slippage_tolerance=self.config.slippage_tolerance,
            buy_pool_id=opportunity.venue_pool_ids.get(buy_venue, ""),
            sell_pool_id=opportunity.venue_pool_ids.get(sell_venue, ""),
            divergence_percent=pct,
        )
        Logger.info(f"[ENGINE] 🎯 {pct:.2f}% divergence, dispatching {request.describe()}")

        self.stats.trades_dispatched += 1
        task = asyncio.create_task(self.executor.execute(request))
        self._trades.add(task)
        task.add_done_callback(partial(self._on_trade_done, request, hold))

    def _on_trade_done(self, request: TradeRequest, hold: GateHold, task: asyncio.Task) -> None:
        """Completion callback: log the outcome and always release this trade's hold."""
        self._trades.discard(task)
        try:
            if task.cancelled():
                self.stats.trades_failed += 1
                Logger.warning(f"[TRADE] {request.asset[:8]} trade cancelled")
                return
            error = task.exception()
            if error is not None:
                self.stats.trades_failed += 1
                Logger.error(f"[TRADE] Swap execution error for {request.asset[:8]}: {error}")
                return
            result: TradeResult = task.result()
            if result.success:
                self.stats.trades_succeeded += 1
                Logger.success(f"[TRADE] {request.asset[:8]} swap sent: {result.tx_id}")
            else:
                self.stats.trades_failed += 1
                Logger.error(f"[TRADE] Swap execution error for {request.asset[:8]}: {result.error}")
        finally:
            self.gate.release(request.asset, hold)

    # =========================================================================
    # QUERIES & LIFECYCLE
    # =========================================================================

    def state_of(self, asset: str) -> DataState:
        opportunity = self.store.get(asset)
        return opportunity.state if opportunity else DataState.NO_DATA

    def opportunities(self, min_percent: Optional[float] = None) -> List[Opportunity]:
        if min_percent is None:
            min_percent = self.config.min_divergence_percent
        return self.store.ranked(min_percent)

    def housekeeping(self) -> List[str]:
        """
        Evict opportunities idle for longer than opportunity_ttl_s.

        Assets with a pending debounce, a held/cooling gate or a busy lock are
        kept until the next pass.
        """
        ttl = self.config.opportunity_ttl_s
        if ttl <= 0:
            return []

        evicted = []
        for asset in self.store.stale_assets(ttl):
            lock = self._asset_locks.get(asset)
            if self.scheduler.pending(asset) or self.gate.is_locked(asset):
                continue
            if lock is not None and lock.locked():
                continue
            self.store.remove(asset)
            self._asset_locks.pop(asset, None)
            self._burst_baselines.pop(asset, None)
            if self.reporter is not None:
                self.reporter.forget(asset)
            evicted.append(asset)

        if evicted:
            self.stats.evicted += len(evicted)
            Logger.debug(f"[ENGINE] Evicted {len(evicted)} idle opportunities")
        return evicted

    @property
    def in_flight(self) -> int:
        return len(self._trades)

    def get_stats(self) -> Dict[str, Any]:
        stats = asdict(self.stats)
        stats.update(
            assets_tracked=len(self.store),
            pending_refreshes=self.scheduler.pending_count,
            trades_in_flight=self.in_flight,
            locked_assets=len(self.gate.locked_assets()),
        )
        return stats

    async def drain(self) -> None:
        """Wait for pending debounced work and in-flight trades."""
        await self.scheduler.drain()
        if self._trades:
            await asyncio.gather(*list(self._trades), return_exceptions=True)

    async def close(self) -> None:
        await self.scheduler.close()
        if self._trades:
            await asyncio.gather(*list(self._trades), return_exceptions=True)
        self.gate.close()
