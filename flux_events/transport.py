"""
Streaming transport capability.

Clients never open sockets themselves: they receive a TransportFactory and
call it once per connect(). A transport reports three things back through
the callbacks passed to `start()`:

- on_open(): the stream is established
- on_message(data): one complete message (awaited before the next is read)
- on_error(exc): anything that went wrong, before or after open

HttpxSSETransport is the default, a Server-Sent-Events reader on top of
httpx's streaming responses.
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, List, Mapping, Optional, Protocol

import httpx

from flux_events.errors import TransportClosedError

logger = logging.getLogger(__name__)

OnOpen = Callable[[], None]
OnMessage = Callable[[str], Awaitable[None]]
OnError = Callable[[BaseException], None]


class Transport(Protocol):
    """One streaming connection. Never reused after close()."""

    async def start(self, on_open: OnOpen, on_message: OnMessage, on_error: OnError) -> None: ...

    async def close(self) -> None: ...


TransportFactory = Callable[[str, Mapping[str, str]], Transport]


async def iter_sse_data(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """
    Yield the data of each Server-Sent Event.

    Multi-line data fields are joined with newlines; comments and the other
    fields (event, id, retry) are ignored. A trailing event without its blank
    terminator line is discarded.
    """
    data: List[str] = []
    async for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            if data:
                yield "\n".join(data)
                data = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field == "data":
            data.append(value[1:] if value.startswith(" ") else value)


class HttpxSSETransport:
    """
    Server-Sent-Events transport using an httpx streaming GET.

    The stream is read by a background task. Closing cancels that task; a
    stream the server ends on its own is reported as TransportClosedError.
    """

    def __init__(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.headers = dict(headers or {})
        self._client = client
        self._owns_client = client is None
        self._task: Optional[asyncio.Task] = None
        self._closing = False

    async def start(self, on_open: OnOpen, on_message: OnMessage, on_error: OnError) -> None:
        if self._task is not None or self._closing:
            raise RuntimeError("HttpxSSETransport cannot be started twice")
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None))
        self._task = asyncio.create_task(self._run(on_open, on_message, on_error))

    async def _run(self, on_open: OnOpen, on_message: OnMessage, on_error: OnError) -> None:
        try:
            async with self._client.stream("GET", self.url, headers=self.headers) as response:
                response.raise_for_status()
                on_open()
                async for data in iter_sse_data(response.aiter_lines()):
                    await on_message(data)
                    if self._closing:
                        return
            if not self._closing:
                on_error(TransportClosedError("Event stream closed by server"))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._closing:
                on_error(e)
        finally:
            if self._owns_client and self._client is not None:
                await self._client.aclose()
                self._client = None

    async def close(self) -> None:
        self._closing = True
        task, self._task = self._task, None
        # A handler may close the stream from inside the reader task itself;
        # the loop then stops after the current message.
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


def httpx_transport_factory(url: str, headers: Mapping[str, str]) -> Transport:
    return HttpxSSETransport(url, headers)
