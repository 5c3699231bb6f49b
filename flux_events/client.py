"""
Resumable streaming event client.

BaseEventClient owns one streaming connection at a time and routes every
message through normalize -> accept -> cursor filter -> dispatch. The two
concrete flavors (PackageEventsClient, DeepbookEventsClient) only decide the
stream URL, the cursor cache key and what happens on connect() while already
connected.

Lifecycle:
    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED

There is no reconnecting state: a dropped stream is logged, and a fresh
connect() always builds a new transport.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

from flux_events.config import Network, get_flux_base_url, settings
from flux_events.cursor import CacheMethods, CursorStore, advance, should_skip
from flux_events.dispatcher import Dispatcher
from flux_events.errors import ConnectionFailedError, WaitTimeoutError
from flux_events.events.base import NormalizedEvent
from flux_events.events.normalizer import decode
from flux_events.events.registry import WILDCARD, EventHandler, SubscriptionRegistry
from flux_events.transport import Transport, TransportFactory, httpx_transport_factory

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def is_valid_api_key(api_key: Optional[str]) -> bool:
    return isinstance(api_key, str) and len(api_key) > 0


class BaseEventClient:
    """
    Shared connection lifecycle, cursor handling and subscriptions.

    Subclasses set `cache_key` and `stream_label` and implement
    `_resource_path()` and `_query_params()`; they may override `_accepts()`
    to ignore events before the cursor filter.
    """

    cache_key: str = ""
    stream_label: str = "event"

    def __init__(
        self,
        api_key: Optional[str],
        network: Optional[Network] = None,
        custom_url: Optional[str] = None,
        from_timestamp_ms: Optional[int] = None,
        cache: Optional[CacheMethods] = None,
        transport_factory: Optional[TransportFactory] = None,
        connect_timeout: Optional[float] = None,
        match_short_names: bool = True,
    ):
        """
        Args:
            api_key: Key sent as the `api-key` query parameter
            network: Surflux network (default from settings)
            custom_url: Base URL when network is CUSTOM
            from_timestamp_ms: Only events newer than this are dispatched. When
                given, the cached cursor is never consulted.
            cache: get/set cache for the cursor (in-memory when omitted)
            transport_factory: Builds one transport per connect()
            connect_timeout: Seconds to wait for the stream to open
            match_short_names: Let subscriptions on a short name match
        """
        if not is_valid_api_key(api_key):
            raise ValueError("Surflux API key is required. Please provide a valid API key.")

        self.api_key = api_key
        self.base_url = get_flux_base_url(
            network or settings.network, custom_url or settings.custom_url
        )
        self.connect_timeout = connect_timeout if connect_timeout is not None else settings.connect_timeout

        self.registry = SubscriptionRegistry(match_short_names=match_short_names)
        self.dispatcher = Dispatcher(self.registry)
        self.cursor_store = CursorStore(cache, self.cache_key)
        self._transport_factory = transport_factory or httpx_transport_factory

        self._override_timestamp_ms = from_timestamp_ms
        self.from_timestamp_ms = from_timestamp_ms
        self.latest_timestamp_ms: Optional[int] = None

        self._transport: Optional[Transport] = None
        self._opened: Optional[asyncio.Future] = None
        self._state = ConnectionState.DISCONNECTED

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def _resource_path(self) -> str:
        raise NotImplementedError

    def _query_params(self, options: Mapping[str, Any]) -> Dict[str, str]:
        return {}

    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
            "User-Agent": settings.user_agent,
        }

    def build_url(self, **options: Any) -> str:
        """Compose the stream URL: api-key first, then the optional hints."""
        params = {"api-key": self.api_key}
        params.update(self._query_params(options))
        return f"{self.base_url}/{self._resource_path()}?{urlencode(params)}"

    async def connect(self, **options: Any) -> None:
        """
        Open the stream and return once the server reports it open.

        Raises:
            ConnectionFailedError: On a transport error or timeout before open
        """
        cached = await self.cursor_store.load(self._override_timestamp_ms)
        if self._override_timestamp_ms is not None:
            self.from_timestamp_ms = self._override_timestamp_ms
        else:
            self.from_timestamp_ms = cached
        self.latest_timestamp_ms = None

        url = self.build_url(**options)
        loop = asyncio.get_running_loop()
        opened = loop.create_future()
        self._opened = opened
        self._state = ConnectionState.CONNECTING

        transport = self._transport_factory(url, self._headers())
        self._transport = transport

        try:
            await transport.start(
                on_open=lambda: self._on_open(transport),
                on_message=lambda data: self._on_message(transport, data),
                on_error=lambda exc: self._on_error(transport, exc),
            )
            await asyncio.wait_for(opened, timeout=self.connect_timeout)
        except Exception as e:
            await self._abort(transport)
            if isinstance(e, ConnectionFailedError):
                raise
            if isinstance(e, asyncio.TimeoutError):
                raise ConnectionFailedError(
                    f"Timed out after {self.connect_timeout}s opening {self.stream_label} stream"
                ) from e
            raise ConnectionFailedError(f"Failed to open {self.stream_label} stream: {e}") from e
        finally:
            if self._opened is opened:
                self._opened = None

        logger.info(
            f"Connected to {self.stream_label} stream "
            f"(from_timestamp_ms={self.from_timestamp_ms})"
        )

    async def _abort(self, transport: Transport) -> None:
        if self._transport is transport:
            self._transport = None
            self._state = ConnectionState.DISCONNECTED
        try:
            await transport.close()
        except Exception as e:
            logger.warning(f"Error closing failed {self.stream_label} transport: {e}")

    async def disconnect(self) -> None:
        """Close the stream (if any) and persist the cursor."""
        transport = self._transport
        try:
            if transport is not None:
                # Stop dispatch before the transport is released
                self._transport = None
                try:
                    await transport.close()
                except Exception as e:
                    logger.warning(f"Error closing {self.stream_label} transport: {e}")
                logger.info(f"Disconnected from {self.stream_label} stream")
        finally:
            self._state = ConnectionState.DISCONNECTED
            if self._opened is not None and not self._opened.done():
                self._opened.set_exception(
                    ConnectionFailedError(f"{self.stream_label} stream disconnected before open")
                )
            await self.cursor_store.save(self.latest_timestamp_ms)

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------

    def _on_open(self, transport: Transport) -> None:
        if transport is not self._transport:
            return
        self._state = ConnectionState.CONNECTED
        if self._opened is not None and not self._opened.done():
            self._opened.set_result(None)

    def _on_error(self, transport: Transport, exc: BaseException) -> None:
        if transport is not self._transport:
            return
        if self._state is ConnectionState.CONNECTING:
            if self._opened is not None and not self._opened.done():
                self._opened.set_exception(
                    ConnectionFailedError(f"{self.stream_label} stream connection failed: {exc}")
                )
            return
        # Post-open errors never change state; there is no implicit reconnect
        logger.error(f"{self.stream_label} stream error: {exc}")

    async def _on_message(self, transport: Transport, data: str) -> None:
        if transport is not self._transport:
            return
        event = decode(data)
        if event is None:
            return
        await self.handle_event(event)

    async def handle_event(self, event: NormalizedEvent) -> int:
        """Filter one normalized event and dispatch it; returns handlers invoked."""
        if not self._accepts(event):
            return 0

        if should_skip(event.timestamp_ms, self.from_timestamp_ms):
            logger.debug(
                f"Skipping already seen {event.type} at {event.timestamp_ms} "
                f"(cursor {self.from_timestamp_ms})"
            )
            return 0

        self.latest_timestamp_ms = advance(event.timestamp_ms, self.latest_timestamp_ms)
        return await self.dispatcher.dispatch(event)

    def _accepts(self, event: NormalizedEvent) -> bool:
        return True

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on(self, pattern: str, handler: EventHandler) -> None:
        """Subscribe to an exact type, short name, glob or "*"."""
        self.registry.register(pattern, handler)

    def off(self, pattern: str, handler: Optional[EventHandler] = None) -> None:
        """Remove one handler, or every handler for the pattern."""
        self.registry.unregister(pattern, handler)

    def on_all(self, handler: EventHandler) -> None:
        """Subscribe to every event; the handler receives the full envelope."""
        self.registry.register(WILDCARD, handler)

    async def wait_for(self, pattern: str, timeout_ms: Optional[float] = None) -> Any:
        """
        Wait for the next event matching the pattern.

        Returns:
            The payload the matching subscription would receive

        Raises:
            WaitTimeoutError: If timeout_ms elapses first
        """
        future = asyncio.get_running_loop().create_future()

        def handler(payload: Any) -> None:
            self.registry.unregister(pattern, handler)
            if not future.done():
                future.set_result(payload)

        self.registry.register(pattern, handler)
        try:
            # None or 0 waits indefinitely
            if not timeout_ms:
                return await future
            return await asyncio.wait_for(future, timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise WaitTimeoutError(pattern, timeout_ms) from None
        finally:
            self.registry.unregister(pattern, handler)
