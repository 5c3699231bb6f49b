"""
Client for Sui package events.

Usage:
    client = PackageEventsClient(api_key="...", package_id="0xabc")
    client.on("SwapEvent", lambda contents: print(contents))
    client.on("0xabc::*::SwapEvent", handle_swap)
    client.on_all(lambda event: print(event["data"]["event_type"]))
    await client.connect()
    ...
    await client.disconnect()
"""

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import orjson

from flux_events.client import BaseEventClient
from flux_events.config import PACKAGE_EVENTS_CACHE_KEY, Network, settings
from flux_events.cursor import CacheMethods
from flux_events.events.base import NormalizedEvent
from flux_events.events.registry import EventHandler
from flux_events.transport import TransportFactory

logger = logging.getLogger(__name__)

PACKAGE_INFO_FILE = "package-info.json"


def load_package_id(types_path: Union[str, Path]) -> Optional[str]:
    """
    Read the package ID recorded next to generated event types.

    Returns:
        The `packageId` from package-info.json, or None if unavailable
    """
    info_path = Path(types_path).expanduser().resolve() / PACKAGE_INFO_FILE
    if not info_path.is_file():
        return None

    try:
        info = orjson.loads(info_path.read_bytes())
    except (OSError, orjson.JSONDecodeError) as e:
        logger.warning(f"Failed to load {info_path}, using event name only: {e}")
        return None

    if isinstance(info, dict) and info.get("packageId"):
        return str(info["packageId"])
    return None


class PackageEventsClient(BaseEventClient):
    """
    Streams package events from `<flux>/events`.

    connect() while connected is a no-op; disconnect() first to reconnect.
    Subscriptions on a short name ("SwapEvent") match any fully qualified
    type ending in it.
    """

    cache_key = PACKAGE_EVENTS_CACHE_KEY
    stream_label = "package events"

    def __init__(
        self,
        api_key: Optional[str] = None,
        package_id: Optional[str] = None,
        network: Optional[Network] = None,
        custom_url: Optional[str] = None,
        from_timestamp_ms: Optional[int] = None,
        cache: Optional[CacheMethods] = None,
        generated_types_path: Optional[Union[str, Path]] = None,
        transport_factory: Optional[TransportFactory] = None,
        connect_timeout: Optional[float] = None,
    ):
        """
        Args:
            api_key: Surflux API key (default from settings)
            package_id: Ignore events whose type does not contain this ID
            generated_types_path: Directory holding package-info.json, used by on_named()

        See BaseEventClient for the remaining arguments.
        """
        super().__init__(
            api_key if api_key is not None else settings.api_key,
            network=network,
            custom_url=custom_url,
            from_timestamp_ms=from_timestamp_ms,
            cache=cache,
            transport_factory=transport_factory,
            connect_timeout=connect_timeout,
            match_short_names=True,
        )
        self.package_id = package_id
        self.generated_types_path = Path(
            generated_types_path if generated_types_path is not None else settings.generated_types_path
        )

    def _resource_path(self) -> str:
        return "events"

    def _query_params(self, options: Mapping[str, Any]) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if options.get("last_id") is not None:
            params["last-id"] = str(options["last_id"])
        return params

    async def connect(self, last_id: Optional[str] = None) -> None:
        """
        Open the package events stream.

        Args:
            last_id: Server-side resume hint (`last-id` query parameter)
        """
        if self.connected:
            return
        await super().connect(last_id=last_id)

    def _accepts(self, event: NormalizedEvent) -> bool:
        if self.package_id and self.package_id not in event.type:
            logger.debug(f"Ignoring {event.type}: not from package {self.package_id}")
            return False
        return True

    def on_named(self, name: str, handler: EventHandler) -> None:
        """
        Subscribe by event struct name.

        Registers the bare name, plus `<packageId>::*::<name>` when generated
        types with a package-info.json are available.
        """
        package_id = load_package_id(self.generated_types_path)
        if package_id:
            self.on(f"{package_id}::*::{name}", handler)
        self.on(name, handler)

    def create_typed_handlers(self, handlers: Mapping[str, Optional[EventHandler]]) -> None:
        """Register on_named() subscriptions from a {name: handler} mapping."""
        for name, handler in handlers.items():
            if handler:
                self.on_named(name, handler)
