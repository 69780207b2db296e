"""
Opportunity Store
=================
Per-asset record of the latest price on each venue and the derived
cross-venue divergence.

`upsert` is the only mutator. Derived fields are recomputed from the full set
of known venue prices on every call and stay None (never 0) until at least
two venues have reported.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from dexarb.feeds.price_update import Venue, utc_now

# Divergence changes smaller than this are float noise, not a real move
DIVERGENCE_EPSILON = 1e-9


class DataState(str, Enum):
    """How much of an asset's cross-venue picture is known."""
    NO_DATA = "NO_DATA"
    PARTIAL_DATA = "PARTIAL_DATA"  # one venue
    FULL_DATA = "FULL_DATA"  # two or more venues


@dataclass(frozen=True)
class OpportunitySnapshot:
    """Immutable copy of the comparable parts of an Opportunity."""
    venue_prices: Tuple[Tuple[Venue, Decimal], ...] = ()
    divergence_percent: Optional[float] = None

    @classmethod
    def empty(cls) -> "OpportunitySnapshot":
        return cls()

    def price(self, venue: Venue) -> Optional[Decimal]:
        return dict(self.venue_prices).get(venue)

    def differs_from(self, other: "OpportunitySnapshot", epsilon: float = DIVERGENCE_EPSILON) -> bool:
        """
        True if any venue price differs or divergence moved by more than epsilon.

        A venue appearing, or divergence going from undefined to defined (or
        back), counts as a change.
        """
        if dict(self.venue_prices) != dict(other.venue_prices):
            return True
        a, b = self.divergence_percent, other.divergence_percent
        if a is None or b is None:
            return a is not b
        return abs(a - b) > epsilon


@dataclass
class Opportunity:
    """Aggregated cross-venue view of one asset."""
    asset: str
    venue_prices: Dict[Venue, Decimal] = field(default_factory=dict)
    venue_pool_ids: Dict[Venue, str] = field(default_factory=dict)
    venue_updated_at: Dict[Venue, datetime] = field(default_factory=dict)
    price_difference: Optional[Decimal] = None
    divergence_percent: Optional[float] = None
    last_updated: datetime = field(default_factory=utc_now)
    created_at: datetime = field(default_factory=utc_now)

    @property
    def state(self) -> DataState:
        known = len(self.venue_prices)
        if known == 0:
            return DataState.NO_DATA
        if known == 1:
            return DataState.PARTIAL_DATA
        return DataState.FULL_DATA

    @property
    def has_divergence(self) -> bool:
        return self.divergence_percent is not None

    def best_pair(self) -> Optional[Tuple[Venue, Venue]]:
        """(buy_venue, sell_venue): cheapest and most expensive known venue."""
        if len(self.venue_prices) < 2:
            return None
        ordered = sorted(self.venue_prices.items(), key=lambda item: item[1])
        return ordered[0][0], ordered[-1][0]

    def snapshot(self) -> OpportunitySnapshot:
        return OpportunitySnapshot(
            venue_prices=tuple(sorted(self.venue_prices.items(), key=lambda item: item[0].value)),
            divergence_percent=self.divergence_percent,
        )

    def recompute(self) -> None:
        """Refresh price_difference / divergence_percent from every known price."""
        prices = list(self.venue_prices.values())
        if len(prices) < 2:
            self.price_difference = None
            self.divergence_percent = None
            return

        max_price = max(prices)
        min_price = min(prices)
        total = max_price + min_price
        if total <= 0:
            self.price_difference = None
            self.divergence_percent = None
            return

        difference = max_price - min_price
        self.price_difference = difference
        self.divergence_percent = float(difference / (total / 2) * 100)

    def to_dict(self) -> Dict:
        return {
            "asset": self.asset,
            "venue_prices": {v.value: str(p) for v, p in self.venue_prices.items()},
            "venue_pool_ids": {v.value: p for v, p in self.venue_pool_ids.items()},
            "venue_updated_at": {v.value: t.isoformat() for v, t in self.venue_updated_at.items()},
            "price_difference": str(self.price_difference) if self.price_difference is not None else None,
            "divergence_percent": self.divergence_percent,
            "state": self.state.value,
            "last_updated": self.last_updated.isoformat(),
        }


class OpportunityStore:
    """
    Keyed mapping asset -> Opportunity.

    Not locked internally: the engine serializes mutations per asset and the
    store never awaits, so each upsert is atomic on the event loop.
    """

    def __init__(self) -> None:
        self._opportunities: Dict[str, Opportunity] = {}

    def __len__(self) -> int:
        return len(self._opportunities)

    def __contains__(self, asset: str) -> bool:
        return asset in self._opportunities

    def get(self, asset: str) -> Optional[Opportunity]:
        return self._opportunities.get(asset)

    def upsert(
        self,
        asset: str,
        venue: Venue,
        price: Decimal,
        pool_id: str,
        timestamp: datetime = None,
    ) -> Opportunity:
        """Create-or-mutate the asset record for one venue and return it."""
        timestamp = timestamp or utc_now()
        opportunity = self._opportunities.get(asset)
        if opportunity is None:
            opportunity = Opportunity(asset=asset, last_updated=timestamp, created_at=timestamp)
            self._opportunities[asset] = opportunity

        opportunity.venue_prices[venue] = price
        opportunity.venue_updated_at[venue] = timestamp
        if pool_id:
            opportunity.venue_pool_ids[venue] = pool_id
        opportunity.last_updated = timestamp
        opportunity.recompute()
        return opportunity

    def all(self) -> List[Opportunity]:
        return list(self._opportunities.values())

    def ranked(self, min_percent: float = 1.0) -> List[Opportunity]:
        """Opportunities with defined divergence >= min_percent, best first."""
        eligible = [
            opp for opp in self._opportunities.values()
            if opp.divergence_percent is not None and opp.divergence_percent >= min_percent
        ]
        return sorted(eligible, key=lambda opp: opp.divergence_percent, reverse=True)

    def remove(self, asset: str) -> Optional[Opportunity]:
        return self._opportunities.pop(asset, None)

    def stale_assets(self, max_age_s: float, now: datetime = None) -> List[str]:
        """Assets whose last update is older than max_age_s."""
        now = now or utc_now()
        cutoff = now - timedelta(seconds=max_age_s)
        return [asset for asset, opp in self._opportunities.items() if opp.last_updated < cutoff]
