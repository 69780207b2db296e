"""
Trade Execution Contract
========================
What the engine hands to a venue executor and what it gets back.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Protocol, runtime_checkable

from dexarb.feeds.price_update import Venue


@dataclass(frozen=True)
class TradeRequest:
    """Buy on the cheap venue, sell on the expensive one."""
    asset: str
    buy_venue: Venue
    sell_venue: Venue
    amount: Decimal
    slippage_tolerance: float  # percent
    buy_pool_id: str = ""
    sell_pool_id: str = ""
    divergence_percent: Optional[float] = None

    def describe(self) -> str:
        return (
            f"{self.asset[:8]} buy {self.buy_venue.label} → sell {self.sell_venue.label} "
            f"amount={self.amount} slip={self.slippage_tolerance}%"
        )


@dataclass
class TradeResult:
    success: bool
    tx_id: Optional[str] = None
    error: Optional[str] = None
    latency_ms: float = 0.0
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def failed(cls, error: str) -> "TradeResult":
        return cls(success=False, error=error)


@runtime_checkable
class TradeExecutor(Protocol):
    """Anything that can submit a swap for a TradeRequest."""

    async def execute(self, request: TradeRequest) -> TradeResult:
        ...
