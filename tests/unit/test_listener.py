"""
Venue Listener Unit Tests
=========================
Reconnect loop and JSON-lines replay.
"""

import json

import pytest

from dexarb.feeds.listener import ReplayListener, VenueListener
from dexarb.feeds.price_update import Venue
from dexarb.feeds.venue_events import DlmmSwapEvent, PumpSwapTradeEvent

MINT = "So11111111111111111111111111111111111111112"
POOL = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class FlakyListener(VenueListener):
    """Fails on the first connection, then streams two events."""

    def __init__(self):
        super().__init__(Venue.METEORA_DLMM, retry_delay_s=0)
        self.connects = 0

    async def events(self):
        self.connects += 1
        if self.connects == 1:
            raise ConnectionError("socket closed")
        for price in ("1.00", "1.01"):
            yield DlmmSwapEvent(mint=MINT, pool_id=POOL, price=price)


class TestReconnect:

    @pytest.mark.asyncio
    async def test_error_reconnects_and_keeps_streaming(self):
        listener = FlakyListener()
        received = []

        async def sink(venue, event):
            received.append((venue, event.price))
            if len(received) == 2:
                listener.stop()

        await listener.run(sink)

        assert received == [(Venue.METEORA_DLMM, "1.00"), (Venue.METEORA_DLMM, "1.01")]
        assert listener.stats["errors"] == 1
        assert listener.stats["reconnects"] == 1
        assert listener.stats["connection_status"] == "stopped"


class TestReplayListener:

    @pytest.fixture
    def recording(self, tmp_path):
        lines = [
            json.dumps({"venue": "pumpswap", "mint": MINT, "poolId": POOL, "price": "0.00004"}),
            "# comment",
            "",
            json.dumps({"venue": "dlmm", "mint": MINT, "poolId": POOL, "price": "0.000042"}),
            "{not json",
            json.dumps({"venue": "raydium", "mint": MINT, "poolId": POOL, "price": "1"}),
            json.dumps({"venue": "pumpswap", "mint": MINT, "poolId": POOL, "price": "0.000041"}),
        ]
        path = tmp_path / "swaps.jsonl"
        path.write_text("\n".join(lines), encoding="utf-8")
        return path

    @pytest.mark.asyncio
    async def test_replays_own_venue_only(self, recording):
        listener = ReplayListener(Venue.PUMPSWAP, str(recording))
        received = []

        async def sink(venue, event):
            received.append(event)

        await listener.run(sink)

        assert [e.price for e in received] == ["0.00004", "0.000041"]
        assert all(isinstance(e, PumpSwapTradeEvent) for e in received)
        assert listener.skipped == 2
        assert listener.stats["reconnects"] == 0

    @pytest.mark.asyncio
    async def test_missing_file_retries_until_stopped(self, tmp_path):
        listener = ReplayListener(Venue.PUMPSWAP, str(tmp_path / "missing.jsonl"), retry_delay_s=0)

        async def sink(venue, event):
            pass

        original_events = listener.events

        def events_then_stop():
            if listener.stats["errors"] >= 2:
                listener.stop()
            return original_events()

        listener.events = events_then_stop
        await listener.run(sink)

        assert listener.stats["errors"] >= 2
