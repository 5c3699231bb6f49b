"""
Core event envelope types for the flux event streams.

This module contains the building blocks every dispatched event goes through:
- EventEnvelope: Canonical form of one streamed record
- PackageEventData: Flattened payload of a Sui package event
- PackageEvent, FlatEvent: The two normalized variants, discriminated by `kind`

Wire shapes are resolved once by the normalizer. Everything downstream only
calls `contents_view()` / `full_view()` and never looks at the raw shape again.
"""

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Canonical Envelope
# ============================================================================


class PackageEventData(BaseModel):
    """Business payload of a package event, lifted out of the wrapper."""

    event_index: Optional[int] = None
    sender: Optional[str] = None
    event_type: str  # Fully qualified, e.g. "0xabc::pool::SwapEvent"
    contents: Any = None


class EventEnvelope(BaseModel):
    """
    Canonical unit handed to the dispatcher.

    `type` is the fully qualified event type for package events, or the fixed
    discriminant string (e.g. "deepbook_live_trades") for market-data records.
    Extra fields from flat records are kept as-is.
    """

    type: str
    timestamp_ms: Optional[int] = None
    checkpoint_id: Optional[int] = None
    tx_hash: Optional[str] = None
    data: Any = None

    model_config = ConfigDict(extra="allow")

    def contents_view(self) -> Any:
        """Payload for contents-only handlers: data.contents, else data."""
        if isinstance(self.data, dict) and self.data.get("contents") is not None:
            return self.data["contents"]
        return self.data


# ============================================================================
# Normalized Variants
# ============================================================================


class _NormalizedEvent(BaseModel):
    envelope: EventEnvelope
    raw: Dict[str, Any]  # Rich payload exactly as received

    @property
    def type(self) -> str:
        return self.envelope.type

    @property
    def timestamp_ms(self) -> Optional[int]:
        return self.envelope.timestamp_ms

    def contents_view(self) -> Any:
        return self.envelope.contents_view()

    def full_view(self) -> Dict[str, Any]:
        """Payload for full-envelope (`*`) handlers."""
        return self.raw


class PackageEvent(_NormalizedEvent):
    """A `package_event` wrapper whose type was taken from data.event_type."""

    kind: Literal["package"] = "package"


class FlatEvent(_NormalizedEvent):
    """An already-flat record, passed through unchanged."""

    kind: Literal["flat"] = "flat"


NormalizedEvent = Annotated[Union[PackageEvent, FlatEvent], Field(discriminator="kind")]
