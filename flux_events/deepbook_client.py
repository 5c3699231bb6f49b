"""
Client for Deepbook real-time market data.

Usage:
    client = DeepbookEventsClient(
        stream_key="...",
        pool_name="SUI_USDC",
        stream_type=DeepbookStreamType.LIVE_TRADES,
    )
    client.on("deepbook_live_trades", handle_trade)
    await client.connect(last_id="1755091934020-0")
    trade = await client.wait_for("deepbook_live_trades", timeout_ms=5000)
    await client.disconnect()
"""

import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

from flux_events.client import BaseEventClient
from flux_events.config import DEEPBOOK_EVENTS_CACHE_KEY, Network, settings
from flux_events.cursor import CacheMethods
from flux_events.events.registry import WILDCARD, EventHandler
from flux_events.events.types import STREAM_EVENT_TYPES, DeepbookStreamType
from flux_events.transport import TransportFactory

logger = logging.getLogger(__name__)


class DeepbookEventsClient(BaseEventClient):
    """
    Streams one pool's updates from `<flux>/deepbook/<pool>/<stream>`.

    connect() while connected tears the current stream down (saving the
    cursor) before opening a new one. Event types are flat discriminants, so
    only exact, "*" and glob subscriptions apply.
    """

    cache_key = DEEPBOOK_EVENTS_CACHE_KEY

    def __init__(
        self,
        stream_key: Optional[str] = None,
        pool_name: str = "",
        stream_type: DeepbookStreamType = DeepbookStreamType.ALL_UPDATES,
        network: Optional[Network] = None,
        custom_url: Optional[str] = None,
        from_timestamp_ms: Optional[int] = None,
        cache: Optional[CacheMethods] = None,
        transport_factory: Optional[TransportFactory] = None,
        connect_timeout: Optional[float] = None,
    ):
        """
        Args:
            stream_key: Surflux stream key (default from settings)
            pool_name: Trading pool, e.g. "SUI_USDC"
            stream_type: ALL_UPDATES or LIVE_TRADES

        See BaseEventClient for the remaining arguments.
        """
        stream_key = stream_key if stream_key is not None else settings.stream_key
        if not stream_key:
            raise ValueError("Surflux stream key is required. Please provide a valid stream key.")
        if not pool_name:
            raise ValueError("Deepbook pool name is required")

        super().__init__(
            stream_key,
            network=network,
            custom_url=custom_url,
            from_timestamp_ms=from_timestamp_ms,
            cache=cache,
            transport_factory=transport_factory,
            connect_timeout=connect_timeout,
            match_short_names=False,
        )
        self.pool_name = pool_name
        self.stream_type = DeepbookStreamType(stream_type)
        self.stream_label = f"Deepbook {self.stream_type.value}"

    def _resource_path(self) -> str:
        return f"deepbook/{quote(self.pool_name, safe='')}/{self.stream_type.value}"

    def _query_params(self, options: Mapping[str, Any]) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if options.get("last_id") is not None:
            params["last-id"] = str(options["last_id"])

        event_type = options.get("type")
        if event_type is not None:
            # Only all-updates supports the type filter
            if self.stream_type is DeepbookStreamType.ALL_UPDATES:
                params["type"] = str(event_type)
            else:
                logger.debug(f"Ignoring type filter {event_type!r} on {self.stream_label} stream")
        return params

    async def connect(self, last_id: Optional[str] = None, type: Optional[str] = None) -> None:
        """
        Open the pool stream, replacing any open one.

        Args:
            last_id: Resume hint in `timestamp-sequence` form
            type: Server-side event type filter (all-updates only)
        """
        if self.connected:
            await self.disconnect()
        await super().connect(last_id=last_id, type=type)

    def on(self, pattern: str, handler: EventHandler) -> None:
        if WILDCARD not in pattern and pattern not in STREAM_EVENT_TYPES[self.stream_type]:
            logger.warning(f"{self.stream_label} stream never emits {pattern!r}")
        super().on(pattern, handler)
