import asyncio
import inspect
import logging

from flux_events.events.base import NormalizedEvent
from flux_events.events.registry import DeliveryMode, SubscriptionRegistry

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Delivers one normalized event to every matching handler, in match order.

    Contents-only handlers get data.contents (or data); full-envelope handlers
    get the rich payload. A failing handler is logged and skipped.
    """

    def __init__(self, registry: SubscriptionRegistry):
        self.registry = registry

    async def dispatch(self, event: NormalizedEvent) -> int:
        """Returns the number of handlers invoked."""
        matched = self.registry.match_all(event.type)

        for handler, mode in matched:
            if mode is DeliveryMode.FULL_ENVELOPE:
                payload = event.full_view()
            else:
                payload = event.contents_view()

            try:
                result = handler(payload)
                # Handle both sync and async handlers
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                task = asyncio.current_task()
                if task is not None and task.cancelling():
                    raise
                logger.error(f"Event handler for {event.type} was cancelled")
            except Exception:
                logger.exception(f"Error in event handler for {event.type}")

        return len(matched)
