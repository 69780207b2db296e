"""
Quote Fetcher Interface
=======================
On-demand price lookups used when a venue's event does not carry a price that
can be compared directly (e.g. DAMM v2 needs a fresh pool-state read).
"""

from decimal import Decimal
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable

from .price_update import Venue, to_decimal


@runtime_checkable
class QuoteFetcher(Protocol):
    """
    Protocol for on-demand venue price lookups.

    Implementations talk to RPC / SDKs; they return None when no price is
    available rather than a sentinel such as 0.
    """

    async def fetch_price(self, venue: Venue, asset: str, pool_id: str) -> Optional[Decimal]:
        """Current price of `asset` in `pool_id` on `venue`."""
        ...


class StaticQuoteFetcher:
    """In-memory fetcher: replay runs and tests seed prices by (venue, pool)."""

    def __init__(self, prices: Dict[Tuple[Venue, str], Decimal] = None):
        self._prices: Dict[Tuple[Venue, str], Decimal] = dict(prices or {})
        self.calls = 0

    def set_price(self, venue: Venue, pool_id: str, price) -> None:
        self._prices[(venue, pool_id)] = to_decimal(price)

    async def fetch_price(self, venue: Venue, asset: str, pool_id: str) -> Optional[Decimal]:
        self.calls += 1
        return self._prices.get((venue, pool_id))
