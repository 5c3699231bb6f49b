"""
Subscription registry and pattern matching.

A subscription key is one of:
- an exact event type ("0xabc::pool::SwapEvent", "deepbook_live_trades")
- a short name, the part after the last "::" ("SwapEvent")
- a glob where `*` matches any run of characters ("0xabc::*::SwapEvent")
- the universal wildcard "*"

Usage:
    >>> registry = SubscriptionRegistry()
    >>> registry.register("SwapEvent", handle_swap)
    >>> [mode for _, mode in registry.match_all("0xabc::pool::SwapEvent")]
    [<DeliveryMode.CONTENTS: 'contents'>]
"""

import re
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Tuple

EventHandler = Callable[[Any], Any]

WILDCARD = "*"
TYPE_SEPARATOR = "::"


class DeliveryMode(str, Enum):
    """What a matched handler receives."""

    CONTENTS = "contents"  # data.contents, or data when there are no contents
    FULL_ENVELOPE = "full_envelope"  # the full (rich) event


@lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> "re.Pattern[str]":
    parts = (re.escape(part) for part in pattern.split(WILDCARD))
    return re.compile(".*".join(parts), re.DOTALL)


def matches_pattern(event_type: str, pattern: str) -> bool:
    """True if the pattern is "*" or the whole event type matches the glob."""
    if pattern == WILDCARD:
        return True
    return _compile_glob(pattern).fullmatch(event_type) is not None


def short_name(event_type: str) -> str:
    return event_type.rsplit(TYPE_SEPARATOR, 1)[-1]


class SubscriptionRegistry:
    """
    Ordered mapping of pattern -> handlers.

    Handlers keep insertion order and are not deduplicated. An entry is
    removed as soon as its last handler is.
    """

    def __init__(self, match_short_names: bool = True):
        self.match_short_names = match_short_names
        self._entries: Dict[str, List[EventHandler]] = {}

    def register(self, pattern: str, handler: EventHandler) -> None:
        self._entries.setdefault(pattern, []).append(handler)

    def unregister(self, pattern: str, handler: Optional[EventHandler] = None) -> None:
        """
        Remove one handler occurrence, or the whole entry when no handler is given.

        Unknown patterns and handlers are ignored.
        """
        if handler is None:
            self._entries.pop(pattern, None)
            return

        handlers = self._entries.get(pattern)
        if handlers is None:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return
        if not handlers:
            del self._entries[pattern]

    def match_all(self, event_type: str) -> List[Tuple[EventHandler, DeliveryMode]]:
        """
        Resolve every handler interested in an event type.

        Order: exact type, short name, "*", then other globs. A pattern hit by
        several rules fires once per rule.
        """
        matched: List[Tuple[EventHandler, DeliveryMode]] = []

        def add(pattern: str, mode: DeliveryMode) -> None:
            matched.extend((handler, mode) for handler in self._entries.get(pattern, ()))

        add(event_type, DeliveryMode.CONTENTS)
        if self.match_short_names:
            add(short_name(event_type), DeliveryMode.CONTENTS)
        add(WILDCARD, DeliveryMode.FULL_ENVELOPE)

        for pattern in list(self._entries):
            if pattern == WILDCARD or WILDCARD not in pattern:
                continue
            if matches_pattern(event_type, pattern):
                add(pattern, DeliveryMode.CONTENTS)

        return matched

    def handlers(self, pattern: str) -> List[EventHandler]:
        return list(self._entries.get(pattern, ()))

    def patterns(self) -> List[str]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._entries

    def __len__(self) -> int:
        return len(self._entries)
