"""
Venue Swap Events
=================
Decoded swap events, one closed type per venue, and the single function that
turns any of them into a `PriceUpdate`.

The decoders that produce these events (instruction parsing, reserve math)
live outside dexarb; by the time an event reaches here it only carries the
fields the listeners extracted from the transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

from solders.pubkey import Pubkey

from .price_update import PriceUpdate, Venue, to_decimal, utc_now


@dataclass(frozen=True)
class SwapEvent:
    """Fields shared by every decoded venue swap."""
    mint: Optional[str]
    pool_id: Optional[str]
    price: Optional[Union[str, Decimal]]
    side: str = ""  # "buy" | "sell"
    user: str = ""
    amount_in: int = 0
    amount_out: int = 0
    base_reserve: int = 0
    quote_reserve: int = 0
    observed_at: Optional[datetime] = None


@dataclass(frozen=True)
class PumpSwapTradeEvent(SwapEvent):
    """PumpSwap AMM buy/sell; price derived inline from pool reserves."""
    venue = Venue.PUMPSWAP


@dataclass(frozen=True)
class DammV2SwapEvent(SwapEvent):
    """Meteora DAMM v2 swap; price read from the pool's sqrt price."""
    venue = Venue.METEORA_DAMM_V2


@dataclass(frozen=True)
class DlmmSwapEvent(SwapEvent):
    """Meteora DLMM swap; price read from the active bin."""
    venue = Venue.METEORA_DLMM


VenueEvent = Union[PumpSwapTradeEvent, DammV2SwapEvent, DlmmSwapEvent]

EVENT_TYPES = {
    Venue.PUMPSWAP: PumpSwapTradeEvent,
    Venue.METEORA_DAMM_V2: DammV2SwapEvent,
    Venue.METEORA_DLMM: DlmmSwapEvent,
}


VENUE_ALIASES = {
    "PUMPSWAP": Venue.PUMPSWAP,
    "PUMP": Venue.PUMPSWAP,
    "METEORA_DAMM_V2": Venue.METEORA_DAMM_V2,
    "DAMMV2": Venue.METEORA_DAMM_V2,
    "DAMM": Venue.METEORA_DAMM_V2,
    "METEORA_DLMM": Venue.METEORA_DLMM,
    "DLMM": Venue.METEORA_DLMM,
}


def resolve_venue(venue: Union[str, Venue]) -> Venue:
    """Venue from an enum member or a case-insensitive name/alias."""
    if isinstance(venue, Venue):
        return venue
    try:
        return VENUE_ALIASES[str(venue).strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown venue: {venue!r}") from None


def is_valid_address(value: Optional[str]) -> bool:
    """True for a base58 32-byte Solana address."""
    if not value or not isinstance(value, str):
        return False
    try:
        Pubkey.from_string(value)
    except ValueError:
        return False
    return True


def parse_price(raw: Any) -> Optional[Decimal]:
    """Positive finite Decimal, or None if the listener produced garbage."""
    if raw is None or raw == "":
        return None
    try:
        price = to_decimal(raw)
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


def parse_amount(raw: Any) -> int:
    """Integer base units for informational fields; 0 when absent or unparsable."""
    if raw is None or raw == "":
        return 0
    try:
        amount = to_decimal(raw)
    except (InvalidOperation, ValueError, TypeError):
        return 0
    if not amount.is_finite():
        return 0
    return int(amount)


def normalize(event: VenueEvent) -> Optional[PriceUpdate]:
    """
    Convert a decoded venue event into the canonical PriceUpdate.

    Returns None for incomplete or malformed events so they never reach the
    engine: missing/invalid mint or pool address, or an unusable price.
    """
    venue = getattr(type(event), "venue", None)
    if venue is None:
        raise TypeError(f"Unsupported venue event type: {type(event).__name__}")

    if not is_valid_address(event.mint) or not is_valid_address(event.pool_id):
        return None

    price = parse_price(event.price)
    if price is None:
        return None

    return PriceUpdate(
        asset=event.mint,
        venue=venue,
        price=price,
        pool_id=event.pool_id,
        observed_at=event.observed_at or utc_now(),
    )


def event_from_dict(venue: Union[str, Venue], payload: Dict[str, Any]) -> VenueEvent:
    """
    Build a venue event from a JSON record.

    Accepts both the listener output keys (poolId, baseTokenBalance, ...) and
    snake_case names.
    """
    event_type = EVENT_TYPES[resolve_venue(venue)]

    def pick(*keys, default=None):
        for key in keys:
            if key in payload and payload[key] is not None:
                return payload[key]
        return default

    return event_type(
        mint=pick("mint", "asset"),
        pool_id=pick("poolId", "pool_id"),
        price=pick("price"),
        side=str(pick("type", "side", default="")),
        user=str(pick("user", default="")),
        amount_in=parse_amount(pick("amount_in")),
        amount_out=parse_amount(pick("amount_out")),
        base_reserve=parse_amount(pick("baseTokenBalance", "base_reserve")),
        quote_reserve=parse_amount(pick("quoteTokenBalance", "quote_reserve")),
    )
