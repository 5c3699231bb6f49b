"""
Type-safe event type definitions for the Deepbook streams.

Usage:
    from flux_events.events.types import DeepbookStreamType, DeepbookEventType

    client = DeepbookEventsClient(
        stream_key="...", pool_name="SUI_USDC", stream_type=DeepbookStreamType.LIVE_TRADES
    )
    client.on("deepbook_live_trades", handle_trade)
"""

from enum import Enum
from typing import Dict, Literal, Tuple


class DeepbookStreamType(str, Enum):
    """Which Deepbook stream endpoint to connect to."""

    ALL_UPDATES = "all-updates"
    LIVE_TRADES = "live-trades"


DeepbookEventType = Literal[
    "deepbook_live_trades",
    "deepbook_order_book_depth",
    "deepbook_all_updates_canceled",
    "deepbook_all_updates_placed",
    "deepbook_all_updates_modified",
    "deepbook_all_updates_expired",
]

# Event types each stream can emit
STREAM_EVENT_TYPES: Dict[DeepbookStreamType, Tuple[str, ...]] = {
    DeepbookStreamType.ALL_UPDATES: (
        "deepbook_live_trades",
        "deepbook_order_book_depth",
        "deepbook_all_updates_canceled",
        "deepbook_all_updates_placed",
        "deepbook_all_updates_modified",
        "deepbook_all_updates_expired",
    ),
    DeepbookStreamType.LIVE_TRADES: (
        "deepbook_live_trades",
        "deepbook_order_book_depth",
    ),
}
