"""
Price Update Contract
=====================
The normalized event every venue listener hands to the arbitrage engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Union


class Venue(str, Enum):
    """Liquidity venues watched on Solana."""
    PUMPSWAP = "PUMPSWAP"
    METEORA_DAMM_V2 = "METEORA_DAMM_V2"
    METEORA_DLMM = "METEORA_DLMM"

    @property
    def label(self) -> str:
        return _VENUE_LABELS[self]


_VENUE_LABELS = {
    Venue.PUMPSWAP: "PumpSwap",
    Venue.METEORA_DAMM_V2: "DammV2",
    Venue.METEORA_DLMM: "DLMM",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_decimal(value: Union[str, int, Decimal]) -> Decimal:
    """Coerce a price to Decimal without passing through binary float."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # repr() keeps the shortest round-tripping digits
        return Decimal(repr(value))
    return Decimal(str(value).strip())


@dataclass(frozen=True)
class PriceUpdate:
    """A single venue price observation for one asset."""
    asset: str  # Token mint
    venue: Venue
    price: Decimal
    pool_id: str
    observed_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        asset: str,
        venue: Venue,
        price: Union[str, int, Decimal],
        pool_id: str = "",
        observed_at: datetime = None,
    ) -> "PriceUpdate":
        return cls(
            asset=asset,
            venue=Venue(venue),
            price=to_decimal(price),
            pool_id=pool_id or "",
            observed_at=observed_at or utc_now(),
        )
