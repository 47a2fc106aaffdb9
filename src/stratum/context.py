"""Context template — per-request facade delegating to the request and response."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, NoReturn

from starlette.datastructures import MutableHeaders

from stratum import statuses
from stratum.exceptions import HttpError, NonErrorThrownError

if TYPE_CHECKING:
    from stratum.application import Application
    from stratum.request import Request
    from stratum.response import Response
    from stratum.transport import RawRequest, RawResponse


def _access(target: str, name: str, *, writable: bool = True) -> property:
    def fget(self: Context) -> Any:
        return getattr(getattr(self, target), name)

    def fset(self: Context, value: Any) -> None:
        setattr(getattr(self, target), name, value)

    return property(fget, fset if writable else None, doc=f"Delegates to ctx.{target}.{name}.")


def _method(target: str, name: str) -> Any:
    def delegate(self: Context, *args: Any, **kwargs: Any) -> Any:
        return getattr(getattr(self, target), name)(*args, **kwargs)

    delegate.__name__ = name
    delegate.__doc__ = f"Delegates to ctx.{target}.{name}()."
    return delegate


class Context:
    """Shared per-request behavior. The factory sets all per-request fields."""

    app: Application
    req: RawRequest
    res: RawResponse
    request: Request
    response: Response
    state: dict[str, Any]
    original_url: str

    # None means automatic finalization; False hands the response to the handler
    respond: bool | None = None

    # Response delegation
    body = _access("response", "body")
    status = _access("response", "status")
    message = _access("response", "message")
    length = _access("response", "length")
    type = _access("response", "type")
    header_sent = _access("response", "header_sent", writable=False)
    writable = _access("response", "writable", writable=False)
    set = _method("response", "set")
    append = _method("response", "append")
    remove = _method("response", "remove")
    has = _method("response", "has")
    redirect = _method("response", "redirect")

    # Request delegation
    method = _access("request", "method")
    url = _access("request", "url")
    path = _access("request", "path")
    querystring = _access("request", "querystring")
    query = _access("request", "query", writable=False)
    search = _access("request", "search", writable=False)
    host = _access("request", "host", writable=False)
    hostname = _access("request", "hostname", writable=False)
    protocol = _access("request", "protocol", writable=False)
    secure = _access("request", "secure", writable=False)
    origin = _access("request", "origin", writable=False)
    href = _access("request", "href", writable=False)
    ip = _access("request", "ip")
    ips = _access("request", "ips", writable=False)
    subdomains = _access("request", "subdomains", writable=False)
    header = _access("request", "header", writable=False)
    headers = _access("request", "headers", writable=False)
    get = _method("request", "get")

    def throw(self, status: int = 500, message: str | None = None, **props: Any) -> NoReturn:
        """Raise an ``HttpError`` for ``status``; ``props`` become error attributes."""
        raise HttpError(status, message, **props)

    def assert_(
        self, value: Any, status: int = 500, message: str | None = None, **props: Any
    ) -> None:
        if not value:
            self.throw(status, message, **props)

    async def onerror(self, err: Any) -> None:
        """Report ``err`` to the application and, if possible, answer with it.

        Called for chain failures and by the transport-completion watcher,
        which passes ``None`` when the exchange finished cleanly.
        """
        if err is None:
            return

        if not isinstance(err, BaseException):
            err = NonErrorThrownError(f"non-error thrown: {err!r}")

        reported: list[BaseException] = self.__dict__.setdefault("_reported", [])
        if any(seen is err for seen in reported):
            return
        reported.append(err)

        header_sent = self.header_sent or not self.writable
        if header_sent:
            err.header_sent = True  # type: ignore[attr-defined]

        await self.app.emit_error(err, self)

        if header_sent:
            if self.header_sent and self.writable:
                await self.res.abort(err)
            return

        res = self.res
        headers = getattr(err, "headers", None)
        res.headers = MutableHeaders(headers=headers if isinstance(headers, Mapping) else None)

        status = getattr(err, "status", None)
        if not isinstance(status, int) or statuses.message(status) is None:
            status = 500

        self.type = "text"
        self.status = status
        text = str(err) if getattr(err, "expose", False) else self.message
        payload = text.encode("utf-8")
        self.length = len(payload)
        await res.end(payload)

    def to_json(self) -> dict[str, Any]:
        return {
            "request": self.request.to_json(),
            "response": self.response.to_json(),
            "app": self.app.to_json(),
            "original_url": self.original_url,
            "req": "<original req>",
            "res": "<original res>",
        }

    def __repr__(self) -> str:
        return f"<Context {self.method} {self.original_url}>"
