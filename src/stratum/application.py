"""Application — middleware registry, context factory, dispatcher and responder."""

from __future__ import annotations

import inspect
import logging
import traceback
import warnings
from typing import Any

from starlette.types import Receive, Scope, Send

from stratum import statuses
from stratum._types import ComposedMiddleware, ErrorListener, Middleware
from stratum.compose import compose
from stratum.config import AppConfig
from stratum.context import Context
from stratum.convert import convert, is_legacy
from stratum.exceptions import InvalidMiddlewareError, NonErrorThrownError, as_failure
from stratum.request import Request
from stratum.response import Response, dump_json
from stratum.transport import RawRequest, RawResponse, is_stream, serve

logger = logging.getLogger(__name__)


class Application:
    """Ordered middleware chain plus the per-request lifecycle around it.

    ``context``, ``request`` and ``response`` are this application's
    templates: subclasses of the shared base classes, so helpers attached to
    them are visible to every request of this application only.
    """

    def __init__(self, config: AppConfig | None = None, **options: Any) -> None:
        if config is not None and options:
            raise TypeError("pass either a config or keyword options, not both")
        self.config = config if config is not None else AppConfig(**options)
        self.middleware: list[Middleware] = []
        self.context: type[Context] = type("Context", (Context,), {})
        self.request: type[Request] = type("Request", (Request,), {})
        self.response: type[Response] = type("Response", (Response,), {})
        self._error_listeners: list[ErrorListener] = []
        self._composed: ComposedMiddleware | None = None

    # -- configuration -------------------------------------------------

    @property
    def env(self) -> str:
        return self.config.env

    @property
    def proxy(self) -> bool:
        return self.config.proxy

    @property
    def subdomain_offset(self) -> int:
        return self.config.subdomain_offset

    @property
    def proxy_ip_header(self) -> str:
        return self.config.proxy_ip_header

    @property
    def max_ips_count(self) -> int:
        return self.config.max_ips_count

    @property
    def keys(self) -> tuple[str, ...] | None:
        return self.config.keys

    @property
    def silent(self) -> bool:
        return self.config.silent

    def to_json(self) -> dict[str, Any]:
        return {
            "subdomain_offset": self.subdomain_offset,
            "proxy": self.proxy,
            "env": self.env,
        }

    def __repr__(self) -> str:
        return f"<Application {self.to_json()}>"

    # -- middleware registry -------------------------------------------

    def use(self, fn: Middleware) -> Application:
        """Append ``fn`` to the chain. Legacy generator middleware is converted."""
        if not callable(fn):
            raise InvalidMiddlewareError("middleware must be callable")
        if is_legacy(fn):
            warnings.warn(
                "Generator middleware is deprecated; write "
                "`async def middleware(ctx, next)` instead.",
                DeprecationWarning,
                stacklevel=2,
            )
            fn = convert(fn)
        logger.debug("use %s", getattr(fn, "__name__", "-"))
        self.middleware.append(fn)
        self._composed = None
        return self

    # -- error sink ----------------------------------------------------

    def on_error(self, listener: ErrorListener) -> ErrorListener:
        """Subscribe ``listener(err, ctx)``; usable as a decorator."""
        self._error_listeners.append(listener)
        return listener

    def remove_error_listener(self, listener: ErrorListener) -> None:
        self._error_listeners.remove(listener)

    @property
    def error_listeners(self) -> tuple[ErrorListener, ...]:
        return tuple(self._error_listeners)

    async def emit_error(self, err: Any, ctx: Context | None = None) -> None:
        for listener in tuple(self._error_listeners):
            try:
                result = listener(err, ctx)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("error listener %r failed", listener)

    def onerror(self, err: Any, ctx: Context | None = None) -> None:
        """Default error sink: log unexpected failures with their traceback."""
        if not isinstance(err, BaseException):
            raise NonErrorThrownError(f"non-error thrown: {err!r}")

        if getattr(err, "status", None) == 404 or getattr(err, "expose", False):
            return
        if self.silent:
            return

        text = "".join(traceback.format_exception(type(err), err, err.__traceback__))
        indented = "\n".join("  " + line for line in text.rstrip("\n").splitlines())
        logger.error("\n%s\n", indented)

    # -- request lifecycle ---------------------------------------------

    def callback(self) -> ComposedMiddleware:
        """Return the composed chain, installing the default error sink if unset."""
        if self._composed is None:
            self._composed = compose(self.middleware)
        if not self._error_listeners:
            self.on_error(self.onerror)
        return self._composed

    def create_context(self, req: RawRequest, res: RawResponse) -> Context:
        context = self.context()
        request = context.request = self.request()
        response = context.response = self.response()
        context.app = request.app = response.app = self
        context.req = request.req = response.req = req
        context.res = request.res = response.res = res
        request.ctx = response.ctx = context
        request.response = response
        response.request = request
        context.original_url = request.original_url = req.url
        context.state = {}
        return context

    async def handle(self, req: RawRequest, res: RawResponse) -> None:
        """Run one request end to end; failures go to the error sink, never out."""
        fn = self.callback()
        ctx = self.create_context(req, res)
        await self.handle_request(ctx, fn)

    async def handle_request(self, ctx: Context, fn: ComposedMiddleware) -> None:
        res = ctx.res
        res.status_code = 404
        res.on_finished(ctx.onerror)
        try:
            await fn(ctx)
            await respond(ctx)
        except Exception as exc:
            await ctx.onerror(as_failure(exc))

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await _lifespan(receive, send)
            return
        if scope["type"] != "http":
            logger.debug("ignoring %s connection", scope["type"])
            return
        await serve(self.handle, scope, receive, send)

    def listen(self, host: str = "127.0.0.1", port: int = 8000, **kwargs: Any) -> None:
        """Shorthand for serving this application with uvicorn."""
        import uvicorn

        logger.debug("listen %s:%s", host, port)
        uvicorn.run(self, host=host, port=port, **kwargs)


async def _lifespan(receive: Receive, send: Send) -> None:
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            await send({"type": "lifespan.shutdown.complete"})
            return


async def respond(ctx: Context) -> None:
    """Write the settled context to the transport; first matching rule wins."""
    if ctx.respond is False:
        return

    if not ctx.writable:
        return

    res = ctx.res
    body = ctx.body
    code = ctx.status

    if statuses.is_empty(code):
        ctx.body = None
        await res.end()
        return

    if ctx.method == "HEAD":
        if not res.headers_sent and not ctx.response.has("Content-Length"):
            length = ctx.response.length
            if isinstance(length, int):
                ctx.length = length
        await res.end()
        return

    if body is None:
        if ctx.req.http_version_major >= 2:
            text = str(code)
        else:
            text = ctx.message or str(code)
        payload = text.encode("utf-8")
        if not res.headers_sent:
            ctx.type = "text"
            ctx.length = len(payload)
        await res.end(payload)
        return

    if isinstance(body, (bytes, bytearray, memoryview)):
        await res.end(bytes(body))
        return
    if isinstance(body, str):
        await res.end(body)
        return
    if is_stream(body):
        await res.pipe(body)
        return

    payload = dump_json(body).encode("utf-8")
    if not res.headers_sent:
        ctx.length = len(payload)
    await res.end(payload)
