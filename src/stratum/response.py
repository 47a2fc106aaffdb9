"""Response template — status, headers and body accessors over the raw response."""

from __future__ import annotations

import json
import mimetypes
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from starlette.datastructures import MutableHeaders

from stratum import statuses
from stratum.transport import is_stream

if TYPE_CHECKING:
    from stratum.application import Application
    from stratum.context import Context
    from stratum.request import Request
    from stratum.transport import RawRequest, RawResponse

_SHORT_TYPES = {
    "text": "text/plain; charset=utf-8",
    "html": "text/html; charset=utf-8",
    "json": "application/json; charset=utf-8",
    "bin": "application/octet-stream",
    "form": "application/x-www-form-urlencoded",
}


def content_type(value: str) -> str | None:
    """Resolve a short name, file extension or full mime type to a Content-Type."""
    if value in _SHORT_TYPES:
        return _SHORT_TYPES[value]
    if "/" in value:
        return value
    guessed, _ = mimetypes.guess_type("file." + value.lstrip("."))
    if guessed is None:
        return None
    if guessed.startswith("text/") or guessed in ("application/javascript", "application/json"):
        return f"{guessed}; charset=utf-8"
    return guessed


def dump_json(body: Any) -> str:
    return json.dumps(body, ensure_ascii=False, separators=(",", ":"))


class Response:
    """Shared response behavior; per-request data lives on the instance."""

    app: Application
    req: RawRequest
    res: RawResponse
    ctx: Context
    request: Request

    _body: Any = None
    _explicit_status: bool = False

    @property
    def header(self) -> MutableHeaders:
        return self.res.headers

    @property
    def headers(self) -> MutableHeaders:
        return self.res.headers

    @property
    def status(self) -> int:
        return self.res.status_code

    @status.setter
    def status(self, code: int) -> None:
        if self.header_sent:
            return
        if not isinstance(code, int) or isinstance(code, bool):
            raise TypeError("status code must be an int")
        if not 100 <= code <= 999:
            raise ValueError(f"invalid status code: {code}")
        self._explicit_status = True
        self.res.status_code = code
        if self.req.http_version_major < 2:
            self.res.reason = statuses.message(code)
        if self._body is not None and statuses.is_empty(code):
            self.body = None

    @property
    def message(self) -> str:
        return self.res.reason or statuses.message(self.status) or ""

    @message.setter
    def message(self, value: str) -> None:
        self.res.reason = value

    @property
    def body(self) -> Any:
        return self._body

    @body.setter
    def body(self, value: Any) -> None:
        self._body = value

        if value is None:
            if not statuses.is_empty(self.status):
                self.status = 204
            self.remove("Content-Type")
            self.remove("Content-Length")
            self.remove("Transfer-Encoding")
            return

        if not self._explicit_status:
            self.status = 200

        set_type = not self.has("Content-Type")

        if isinstance(value, str):
            if set_type:
                self.type = "html" if value.lstrip().startswith("<") else "text"
            self.length = len(value.encode("utf-8"))
            return

        if isinstance(value, (bytes, bytearray, memoryview)):
            if set_type:
                self.type = "bin"
            self.length = len(value)
            return

        if is_stream(value):
            self.remove("Content-Length")
            if set_type:
                self.type = "bin"
            return

        self.remove("Content-Length")
        self.type = "json"

    @property
    def length(self) -> int | None:
        value = self.get("Content-Length")
        if value:
            return int(value) if value.isdigit() else None
        body = self._body
        if body is None or is_stream(body):
            return None
        if isinstance(body, str):
            return len(body.encode("utf-8"))
        if isinstance(body, (bytes, bytearray, memoryview)):
            return len(body)
        return len(dump_json(body).encode("utf-8"))

    @length.setter
    def length(self, value: int) -> None:
        if not self.has("Transfer-Encoding"):
            self.set("Content-Length", str(value))

    @property
    def type(self) -> str:
        value = self.get("Content-Type")
        return value.split(";", 1)[0].strip() if value else ""

    @type.setter
    def type(self, value: str | None) -> None:
        resolved = content_type(value) if value else None
        if resolved:
            self.set("Content-Type", resolved)
        else:
            self.remove("Content-Type")

    @property
    def header_sent(self) -> bool:
        return self.res.headers_sent

    @property
    def writable(self) -> bool:
        return self.res.writable

    def get(self, field: str) -> str:
        return self.res.headers.get(field.lower()) or ""

    def has(self, field: str) -> bool:
        return field.lower() in self.res.headers

    def set(self, field: str | Mapping[str, Any], value: Any = None) -> None:
        if self.header_sent:
            return
        if isinstance(field, Mapping):
            for key, item in field.items():
                self.set(key, item)
            return
        if isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
            self.remove(field)
            for item in value:
                self.res.headers.append(field, str(item))
            return
        self.res.headers[field] = str(value)

    def append(self, field: str, value: Any) -> None:
        if self.header_sent:
            return
        values = value if isinstance(value, (list, tuple)) else [value]
        for item in values:
            self.res.headers.append(field, str(item))

    def remove(self, field: str) -> None:
        if self.header_sent:
            return
        if field.lower() in self.res.headers:
            del self.res.headers[field]

    def redirect(self, url: str, alt: str = "/") -> None:
        """Redirect to ``url``; ``"back"`` uses the Referer header or ``alt``."""
        if url == "back":
            url = self.ctx.get("Referrer") or alt
        self.set("Location", url)
        if not statuses.is_redirect(self.status):
            self.status = 302
        self.type = "text"
        self.body = f"Redirecting to {url}."

    def to_json(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "header": dict(self.headers),
        }

    def __repr__(self) -> str:
        return f"<Response {self.status} {self.message}>"
