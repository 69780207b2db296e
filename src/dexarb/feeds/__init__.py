from .price_update import PriceUpdate, Venue
from .venue_events import (
    DammV2SwapEvent,
    DlmmSwapEvent,
    PumpSwapTradeEvent,
    SwapEvent,
    event_from_dict,
    normalize,
)
from .quote_fetcher import QuoteFetcher, StaticQuoteFetcher

__all__ = [
    "PriceUpdate",
    "Venue",
    "SwapEvent",
    "PumpSwapTradeEvent",
    "DammV2SwapEvent",
    "DlmmSwapEvent",
    "event_from_dict",
    "normalize",
    "QuoteFetcher",
    "StaticQuoteFetcher",
]
