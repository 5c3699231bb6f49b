"""
Shared pytest configuration and fixtures for the flux-events test suite.

FakeTransport stands in for the streaming connection: tests decide when the
stream opens, push raw messages through it and inject errors.
"""

import asyncio
import logging
from typing import Any, List, Mapping, Optional

import fakeredis
import fakeredis.aioredis
import orjson
import pytest

# Configure logging for tests
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


class FakeTransport:
    """In-memory transport driven by the test."""

    def __init__(self, url: str, headers: Mapping[str, str], auto_open: bool = True, fail_with=None):
        self.url = url
        self.headers = dict(headers)
        self.auto_open = auto_open
        self.fail_with = fail_with
        self.started = False
        self.closed = False
        self._on_open = None
        self._on_message = None
        self._on_error = None

    async def start(self, on_open, on_message, on_error) -> None:
        self.started = True
        self._on_open = on_open
        self._on_message = on_message
        self._on_error = on_error
        loop = asyncio.get_running_loop()
        if self.fail_with is not None:
            loop.call_soon(on_error, self.fail_with)
        elif self.auto_open:
            loop.call_soon(on_open)

    async def close(self) -> None:
        self.closed = True

    def open(self) -> None:
        self._on_open()

    def error(self, exc: BaseException) -> None:
        self._on_error(exc)

    async def push(self, message: Any) -> None:
        """Deliver one message; dicts are JSON-encoded first."""
        if not isinstance(message, (str, bytes)):
            message = orjson.dumps(message).decode()
        await self._on_message(message)


class FakeTransportFactory:
    """Records every transport a client builds."""

    def __init__(self, auto_open: bool = True, fail_with: Optional[BaseException] = None):
        self.auto_open = auto_open
        self.fail_with = fail_with
        self.transports: List[FakeTransport] = []

    def __call__(self, url: str, headers: Mapping[str, str]) -> FakeTransport:
        transport = FakeTransport(url, headers, auto_open=self.auto_open, fail_with=self.fail_with)
        self.transports.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]


def package_event(
    event_type: str = "0xabc::mod::Foo",
    contents: Any = None,
    timestamp_ms: Optional[int] = 100,
    **overrides,
) -> dict:
    """A package_event wrapper as sent by the package events stream."""
    payload = {
        "type": "package_event",
        "timestamp_ms": timestamp_ms,
        "checkpoint_id": 42,
        "tx_hash": "0xdeadbeef",
        "data": {
            "event_index": 0,
            "sender": "0xsender",
            "event_type": event_type,
            "contents": {"x": 1} if contents is None else contents,
        },
    }
    payload.update(overrides)
    return payload


def deepbook_event(event_type: str = "deepbook_live_trades", timestamp_ms: Optional[int] = 100, **data) -> dict:
    """A flat market-data record."""
    return {
        "type": event_type,
        "timestamp_ms": timestamp_ms,
        "checkpoint_id": 7,
        "data": data or {"price": "1.25", "base_quantity": "10", "taker_is_bid": True},
    }


@pytest.fixture
def transport_factory():
    return FakeTransportFactory()


@pytest.fixture
async def fake_redis():
    """Provide a fake Redis instance for testing."""
    redis_instance = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield redis_instance
    await redis_instance.aclose()


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    yield

    for handler in root.handlers[:]:
        root.removeHandler(handler)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark async tests and add other markers."""
    for item in items:
        function = getattr(item, "function", None)
        if function is not None and asyncio.iscoroutinefunction(function):
            item.add_marker(pytest.mark.asyncio)

        if "integration" in item.nodeid.lower():
            item.add_marker(pytest.mark.integration)
        elif "test_" in item.name:
            item.add_marker(pytest.mark.unit)
