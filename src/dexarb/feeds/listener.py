"""
Venue Listeners
===============
A listener owns one venue's event stream and feeds the engine. Transport
failures never reach the engine: the loop logs, waits a fixed delay and
reconnects until stopped.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Union

from dexarb.system.logging import Logger
from .price_update import PriceUpdate, Venue
from .venue_events import VenueEvent, event_from_dict, resolve_venue

UpdateSink = Callable[[Venue, Union[VenueEvent, PriceUpdate]], Awaitable[object]]


class VenueListener(ABC):
    """Base class: subclasses provide `events()`, the base runs the retry loop."""

    def __init__(self, venue: Venue, retry_delay_s: float = 1.0) -> None:
        self.venue = venue
        self.retry_delay_s = retry_delay_s
        self.running = False
        self.stats = {
            "events": 0,
            "reconnects": 0,
            "errors": 0,
            "connection_status": "disconnected",
        }

    @abstractmethod
    def events(self) -> AsyncIterator[Union[VenueEvent, PriceUpdate]]:
        """Open the stream and yield decoded events."""

    @property
    def finite(self) -> bool:
        """True when a normally-ended stream means there is nothing more to read."""
        return False

    async def run(self, sink: UpdateSink) -> None:
        """Consume events into `sink` (normally ArbitrageEngine.on_venue_update)."""
        self.running = True
        label = self.venue.label
        while self.running:
            try:
                self.stats["connection_status"] = "connected"
                async for event in self.events():
                    if not self.running:
                        break
                    self.stats["events"] += 1
                    await sink(self.venue, event)
                if self.finite:
                    break
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.stats["errors"] += 1
                Logger.error(f"[FEED] {label} stream error, restarting in {self.retry_delay_s}s: {e}")
            if not self.running:
                break
            self.stats["reconnects"] += 1
            self.stats["connection_status"] = "reconnecting"
            await asyncio.sleep(self.retry_delay_s)

        self.running = False
        self.stats["connection_status"] = "stopped"

    def stop(self) -> None:
        self.running = False


class ReplayListener(VenueListener):
    """
    Replays recorded venue events from a JSON-lines file.

    Each line is one decoded swap record, e.g.
        {"venue": "pumpswap", "mint": "...", "poolId": "...", "price": "0.000041"}
    Lines whose venue differs from this listener's are skipped, so several
    replay listeners can share one recording.
    """

    def __init__(
        self,
        venue: Venue,
        path: str,
        delay_s: float = 0.0,
        retry_delay_s: float = 1.0,
    ) -> None:
        super().__init__(venue, retry_delay_s=retry_delay_s)
        self.path = path
        self.delay_s = delay_s
        self.skipped = 0

    @property
    def finite(self) -> bool:
        return True

    async def events(self) -> AsyncIterator[VenueEvent]:
        with open(self.path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                event = self._parse_line(line, line_no)
                if event is None:
                    continue
                yield event
                if self.delay_s > 0:
                    await asyncio.sleep(self.delay_s)
                else:
                    await asyncio.sleep(0)

    def _parse_line(self, line: str, line_no: int) -> Optional[VenueEvent]:
        try:
            record: Dict = json.loads(line)
            if resolve_venue(record.get("venue", "")) is not self.venue:
                return None
            return event_from_dict(self.venue, record)
        except (ValueError, TypeError, AttributeError) as e:
            self.skipped += 1
            Logger.warning(f"[FEED] {self.path}:{line_no} skipped: {e}")
            return None
