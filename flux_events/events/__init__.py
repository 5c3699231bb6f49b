"""
Event model, normalization and subscription matching.

- base: EventEnvelope and the normalized event variants
- normalizer: Wire payload -> NormalizedEvent
- registry: Pattern subscriptions and matching
- types: Deepbook stream and event type names
"""

from flux_events.events.base import (
    EventEnvelope,
    FlatEvent,
    NormalizedEvent,
    PackageEvent,
    PackageEventData,
)
from flux_events.events.normalizer import decode, normalize
from flux_events.events.registry import (
    DeliveryMode,
    EventHandler,
    SubscriptionRegistry,
    matches_pattern,
)
from flux_events.events.types import DeepbookEventType, DeepbookStreamType

__all__ = [
    # Envelope types
    "EventEnvelope",
    "PackageEventData",
    "PackageEvent",
    "FlatEvent",
    "NormalizedEvent",
    # Normalizer
    "decode",
    "normalize",
    # Registry
    "DeliveryMode",
    "EventHandler",
    "SubscriptionRegistry",
    "matches_pattern",
    # Deepbook types
    "DeepbookStreamType",
    "DeepbookEventType",
]
