"""Tests for cursor loading, saving and the timestamp filter."""

import logging

import pytest

from flux_events.cursor import CursorStore, InMemoryCache, advance, should_skip

KEY = "test_cursor_key"


class AsyncCache:
    """Cache whose get/set are coroutines."""

    def __init__(self, values=None):
        self.values = dict(values or {})

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value):
        self.values[key] = value


class BrokenCache:
    def get(self, key):
        raise ConnectionError("cache down")

    def set(self, key, value):
        raise ConnectionError("cache down")


# ============================================================================
# Filter helpers
# ============================================================================


@pytest.mark.parametrize(
    "timestamp, cursor, skipped",
    [
        (100, 100, True),  # equal timestamps count as already seen
        (99, 100, True),
        (101, 100, False),
        (None, 100, False),
        (100, None, False),
        (None, None, False),
    ],
)
def test_should_skip(timestamp, cursor, skipped):
    assert should_skip(timestamp, cursor) is skipped


def test_advance_keeps_running_maximum():
    latest = None
    for ts in (5, None, 3, 9, 9, 7):
        latest = advance(ts, latest)
    assert latest == 9


def test_advance_without_timestamps_stays_none():
    assert advance(None, None) is None


# ============================================================================
# CursorStore.load
# ============================================================================


async def test_load_override_wins_and_skips_cache():
    cache = InMemoryCache()
    cache.set(KEY, "500")
    store = CursorStore(cache, KEY)

    assert await store.load(override_ms=10) is None


async def test_load_reads_sync_cache():
    cache = InMemoryCache()
    cache.set(KEY, "101")
    store = CursorStore(cache, KEY)

    assert await store.load() == 101


async def test_load_reads_async_cache():
    store = CursorStore(AsyncCache({KEY: "202"}), KEY)
    assert await store.load() == 202


async def test_load_accepts_bytes():
    store = CursorStore(AsyncCache({KEY: b"303"}), KEY)
    assert await store.load() == 303


async def test_load_missing_value_returns_none():
    store = CursorStore(AsyncCache(), KEY)
    assert await store.load() is None


async def test_load_malformed_value_returns_none(caplog):
    store = CursorStore(AsyncCache({KEY: "yesterday"}), KEY)

    with caplog.at_level(logging.WARNING):
        assert await store.load() is None
    assert "malformed" in caplog.text


async def test_load_failure_is_logged_not_raised(caplog):
    store = CursorStore(BrokenCache(), KEY)

    with caplog.at_level(logging.WARNING):
        assert await store.load() is None
    assert "Failed to load timestamp from cache" in caplog.text


async def test_default_cache_is_in_memory():
    store = CursorStore(None, KEY)
    assert isinstance(store.cache, InMemoryCache)

    await store.save(77)
    assert await store.load() == 77


# ============================================================================
# CursorStore.save
# ============================================================================


async def test_save_writes_string_value():
    cache = AsyncCache()
    store = CursorStore(cache, KEY)

    await store.save(101)

    assert cache.values == {KEY: "101"}


async def test_save_without_timestamp_is_noop():
    cache = AsyncCache({KEY: "50"})
    store = CursorStore(cache, KEY)

    await store.save(None)

    assert cache.values == {KEY: "50"}


async def test_save_failure_is_logged_not_raised(caplog):
    store = CursorStore(BrokenCache(), KEY)

    with caplog.at_level(logging.WARNING):
        await store.save(1)
    assert "Failed to save timestamp to cache" in caplog.text
