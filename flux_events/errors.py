"""Exceptions surfaced to callers of the event clients."""


class FluxEventsError(Exception):
    """Base class for all flux-events errors."""


class ConnectionFailedError(FluxEventsError):
    """The stream could not be opened (error or timeout before open)."""


class TransportClosedError(FluxEventsError):
    """The server ended an open stream."""


class WaitTimeoutError(FluxEventsError, TimeoutError):
    """No matching event arrived within the wait_for timeout."""

    def __init__(self, pattern: str, timeout_ms: float):
        self.pattern = pattern
        self.timeout_ms = timeout_ms
        super().__init__(f"Timeout waiting for event: {pattern} ({timeout_ms} ms)")
