"""
Wire payload normalization.

The package events stream wraps each Move event:

    {"type": "package_event", "timestamp_ms": ..., "checkpoint_id": ...,
     "tx_hash": ..., "data": {"event_index": 0, "sender": "0x...",
                              "event_type": "0xabc::mod::Foo", "contents": {...}}}

Market-data streams send flat records whose `type` is already the
discriminant. Both collapse into a NormalizedEvent here; records that cannot
be decoded are logged and dropped.
"""

import logging
from typing import Any, Dict, Optional, Union

import orjson
from pydantic import ValidationError

from flux_events.events.base import (
    EventEnvelope,
    FlatEvent,
    NormalizedEvent,
    PackageEvent,
    PackageEventData,
)

logger = logging.getLogger(__name__)


def _is_package_wrapper(payload: Dict[str, Any]) -> bool:
    data = payload.get("data")
    return isinstance(data, dict) and bool(data.get("event_type"))


def normalize(payload: Dict[str, Any]) -> Optional[NormalizedEvent]:
    """
    Build the canonical event for one decoded payload.

    Returns:
        PackageEvent or FlatEvent, or None if the payload is dropped
    """
    try:
        if _is_package_wrapper(payload):
            data = PackageEventData.model_validate(payload["data"])
            envelope = EventEnvelope(
                type=data.event_type,
                timestamp_ms=payload.get("timestamp_ms"),
                checkpoint_id=payload.get("checkpoint_id"),
                tx_hash=payload.get("tx_hash"),
                data=data.model_dump(),
            )
            event: NormalizedEvent = PackageEvent(envelope=envelope, raw=payload)
        else:
            envelope = EventEnvelope.model_validate({"type": "", **payload})
            event = FlatEvent(envelope=envelope, raw=payload)
    except ValidationError as e:
        logger.warning(f"Dropping malformed event payload: {e}")
        return None

    if not event.type:
        logger.debug("Dropping event without a type")
        return None

    return event


def decode(message: Union[str, bytes]) -> Optional[NormalizedEvent]:
    """Parse one raw stream message and normalize it."""
    try:
        payload = orjson.loads(message)
    except orjson.JSONDecodeError as e:
        logger.error(f"Error parsing event: {e}")
        return None

    if not isinstance(payload, dict):
        logger.warning(f"Dropping non-object event payload of type {type(payload).__name__}")
        return None

    return normalize(payload)
