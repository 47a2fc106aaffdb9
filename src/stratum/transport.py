"""Raw ASGI request/response handles and the per-connection serve loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import aclosing
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from typing import Any

from starlette.concurrency import iterate_in_threadpool, run_in_threadpool
from starlette.datastructures import Headers, MutableHeaders
from starlette.requests import Request as StarletteRequest
from starlette.types import Message, Receive, Scope, Send

from stratum.exceptions import TransportFailure

logger = logging.getLogger(__name__)

FinishedListener = Callable[[BaseException | None], Awaitable[None] | None]
RequestHandler = Callable[["RawRequest", "RawResponse"], Awaitable[None]]

_CHUNK_SIZE = 64 * 1024

# Inbound body messages held for the handler before the watcher stops reading
_RECEIVE_BUFFER = 4


def _request_target(scope: Scope) -> str:
    raw_path = scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else scope.get("path", "/")
    query = scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


class RawRequest:
    """Inbound half of one HTTP exchange."""

    def __init__(self, scope: Scope, receive: Receive) -> None:
        self.scope = scope
        self.method: str = scope.get("method", "GET")
        self.url: str = _request_target(scope)
        self.headers = Headers(scope=scope)
        self.disconnected = asyncio.Event()
        self._receive = receive
        self._queue: asyncio.Queue[Message] = asyncio.Queue(maxsize=_RECEIVE_BUFFER)
        self._watching = False
        self._request = StarletteRequest(scope, self.receive)

    @property
    def http_version_major(self) -> int:
        version = str(self.scope.get("http_version", "1.1"))
        return int(version.split(".", 1)[0])

    @property
    def scheme(self) -> str:
        return str(self.scope.get("scheme", "http"))

    @property
    def client(self) -> tuple[str, int] | None:
        client = self.scope.get("client")
        return tuple(client) if client else None  # type: ignore[return-value]

    async def receive(self) -> Message:
        if not self._watching:
            return await self._receive()
        if self.disconnected.is_set() and self._queue.empty():
            return {"type": "http.disconnect"}
        return await self._queue.get()

    async def watch(self) -> None:
        """Forward the ASGI receive channel until the peer disconnects.

        Body messages go through a bounded queue, so an unread upload stalls
        here instead of piling up in memory. The disconnect itself is only
        queued when there is room; ``receive()`` synthesizes it otherwise.
        """
        self._watching = True
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                self.disconnected.set()
                if not self._queue.full():
                    self._queue.put_nowait(message)
                return
            await self._queue.put(message)

    async def body(self) -> bytes:
        return await self._request.body()

    async def json(self) -> Any:
        return await self._request.json()

    def stream(self) -> AsyncIterator[bytes]:
        return self._request.stream()


class RawResponse:
    """Outbound half of one HTTP exchange, written through ASGI ``send``."""

    def __init__(self, send: Send) -> None:
        self.status_code = 200
        self.reason: str | None = None
        self.headers = MutableHeaders()
        self.headers_sent = False
        self.finished = False
        self.aborted = False
        self.error: BaseException | None = None
        self._send = send
        self._listeners: list[FinishedListener] = []
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def writable(self) -> bool:
        return not (self.finished or self.aborted)

    def on_finished(self, listener: FinishedListener) -> None:
        """Call ``listener(error)`` once the exchange completes or aborts."""
        if self.writable:
            self._listeners.append(listener)
            return
        # Already settled: notify on the next loop iteration
        task = asyncio.ensure_future(self._notify(listener, self.error))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def write(self, chunk: bytes | str) -> None:
        if not self.writable:
            raise TransportFailure("write after end")
        await self._start()
        await self._emit(
            {"type": "http.response.body", "body": _to_bytes(chunk), "more_body": True}
        )

    async def end(self, chunk: bytes | str | None = None) -> None:
        if not self.writable:
            return
        await self._start()
        await self._emit(
            {"type": "http.response.body", "body": _to_bytes(chunk), "more_body": False}
        )
        if self.aborted:
            return
        self.finished = True
        await self._settle(None)

    async def pipe(self, stream: Any) -> None:
        """Copy a stream-like body to the client chunk by chunk."""
        async with aclosing(iterate_stream(stream)) as chunks:
            async for chunk in chunks:
                if not self.writable:
                    break
                await self.write(chunk)
        await self.end()

    async def abort(self, error: BaseException) -> None:
        """Tear the exchange down without completing the response."""
        if not self.writable:
            return
        self.aborted = True
        await self._settle(error)

    async def _start(self) -> None:
        if self.headers_sent:
            return
        self.headers_sent = True
        await self._emit(
            {
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.headers.raw,
            }
        )

    async def _emit(self, message: Message) -> None:
        if self.aborted:
            return
        try:
            await self._send(message)
        except OSError as exc:
            failure = TransportFailure("connection lost while sending", cause=exc)
            failure.__cause__ = exc
            await self.abort(failure)

    async def _settle(self, error: BaseException | None) -> None:
        self.error = error
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            await self._notify(listener, error)

    @staticmethod
    async def _notify(listener: FinishedListener, error: BaseException | None) -> None:
        result = listener(error)
        if inspect.isawaitable(result):
            await result


def is_stream(body: Any) -> bool:
    if isinstance(body, (str, bytes, bytearray, memoryview, dict, list, tuple, set)):
        return False
    if isinstance(body, AsyncIterable) or inspect.isgenerator(body):
        return True
    return callable(getattr(body, "read", None))


async def iterate_stream(stream: Any) -> AsyncIterator[bytes]:
    """Yield a stream-like body as bytes, closing it when iteration stops.

    Blocking ``read()`` calls and sync iterators run in the threadpool.
    """
    try:
        if isinstance(stream, AsyncIterable):
            async for chunk in stream:
                yield _to_bytes(chunk)
        elif callable(getattr(stream, "read", None)):
            while chunk := await run_in_threadpool(stream.read, _CHUNK_SIZE):
                yield _to_bytes(chunk)
        else:
            async with aclosing(iterate_in_threadpool(iter(stream))) as chunks:
                async for chunk in chunks:
                    yield _to_bytes(chunk)
    finally:
        await _close(stream)


async def _close(stream: Any) -> None:
    aclose = getattr(stream, "aclose", None)
    if callable(aclose):
        await aclose()
        return
    close = getattr(stream, "close", None)
    if callable(close):
        await run_in_threadpool(close)


def _to_bytes(chunk: Any) -> bytes:
    if chunk is None:
        return b""
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)


async def serve(handler: RequestHandler, scope: Scope, receive: Receive, send: Send) -> None:
    """Run ``handler`` for one ASGI HTTP call, aborting it if the client leaves."""
    request = RawRequest(scope, receive)
    response = RawResponse(send)
    watcher = asyncio.ensure_future(request.watch())
    handling = asyncio.ensure_future(handler(request, response))

    try:
        done, _ = await asyncio.wait(
            {watcher, handling}, return_when=asyncio.FIRST_COMPLETED
        )
        if handling not in done:
            cause = watcher.exception()
            if not response.finished:
                logger.debug(
                    "client disconnected before %s %s completed", request.method, request.url
                )
                await response.abort(
                    TransportFailure(
                        "client disconnected before the response completed", cause=cause
                    )
                )
                handling.cancel()
            await asyncio.wait({handling})
        if not handling.cancelled():
            handling.result()
    finally:
        watcher.cancel()
        if not handling.done():
            handling.cancel()
