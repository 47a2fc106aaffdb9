"""Request template — read-side accessors over the raw transport request."""

from __future__ import annotations

import ipaddress
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit, urlunsplit

from starlette.datastructures import Headers, QueryParams

if TYPE_CHECKING:
    from stratum.application import Application
    from stratum.context import Context
    from stratum.response import Response
    from stratum.transport import RawRequest, RawResponse


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


class Request:
    """Shared request behavior; per-request data lives on the instance."""

    app: Application
    req: RawRequest
    res: RawResponse
    ctx: Context
    response: Response
    original_url: str

    _ip: str | None = None

    @property
    def header(self) -> Headers:
        return self.req.headers

    @property
    def headers(self) -> Headers:
        return self.req.headers

    @property
    def url(self) -> str:
        return self.req.url

    @url.setter
    def url(self, value: str) -> None:
        self.req.url = value

    @property
    def method(self) -> str:
        return self.req.method

    @method.setter
    def method(self, value: str) -> None:
        self.req.method = value.upper()

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @path.setter
    def path(self, value: str) -> None:
        parts = urlsplit(self.url)
        if parts.path == value:
            return
        self.url = urlunsplit(parts._replace(path=value))

    @property
    def querystring(self) -> str:
        return urlsplit(self.url).query

    @querystring.setter
    def querystring(self, value: str) -> None:
        parts = urlsplit(self.url)
        if parts.query == value:
            return
        self.url = urlunsplit(parts._replace(query=value))

    @property
    def search(self) -> str:
        return f"?{self.querystring}" if self.querystring else ""

    @property
    def query(self) -> QueryParams:
        return QueryParams(self.querystring)

    @property
    def host(self) -> str:
        host = None
        if self.app.proxy:
            host = self.get("X-Forwarded-Host")
        if not host:
            if self.req.http_version_major >= 2:
                host = self.get(":authority")
            if not host:
                host = self.get("Host")
        return host.split(",", 1)[0].strip() if host else ""

    @property
    def hostname(self) -> str:
        host = self.host
        if not host:
            return ""
        if host.startswith("["):
            # IPv6 literal, strip the brackets
            return host[1 : host.index("]")] if "]" in host else host
        return host.split(":", 1)[0]

    @property
    def protocol(self) -> str:
        if self.req.scheme in ("https", "wss"):
            return "https"
        if not self.app.proxy:
            return "http"
        proto = self.get("X-Forwarded-Proto")
        return proto.split(",", 1)[0].strip() if proto else "http"

    @property
    def secure(self) -> bool:
        return self.protocol == "https"

    @property
    def origin(self) -> str:
        return f"{self.protocol}://{self.host}"

    @property
    def href(self) -> str:
        if self.original_url.startswith(("http://", "https://")):
            return self.original_url
        return self.origin + self.original_url

    @property
    def ips(self) -> list[str]:
        config = self.app.config
        value = self.get(config.proxy_ip_header) if config.proxy else ""
        ips = [ip.strip() for ip in value.split(",") if ip.strip()] if value else []
        if config.max_ips_count > 0:
            ips = ips[-config.max_ips_count :]
        return ips

    @property
    def ip(self) -> str:
        if self._ip is None:
            ips = self.ips
            client = self.req.client
            self._ip = ips[0] if ips else (client[0] if client else "")
        return self._ip

    @ip.setter
    def ip(self, value: str) -> None:
        self._ip = value

    @property
    def subdomains(self) -> list[str]:
        hostname = self.hostname
        if not hostname or _is_ip(hostname):
            return []
        return list(reversed(hostname.split(".")))[self.app.subdomain_offset :]

    @property
    def length(self) -> int | None:
        value = self.get("Content-Length")
        return int(value) if value.isdigit() else None

    @property
    def type(self) -> str:
        value = self.get("Content-Type")
        return value.split(";", 1)[0].strip() if value else ""

    def get(self, field: str) -> str:
        name = field.lower()
        if name in ("referer", "referrer"):
            return self.headers.get("referrer") or self.headers.get("referer") or ""
        return self.headers.get(name) or ""

    async def body(self) -> bytes:
        return await self.req.body()

    async def json(self) -> Any:
        return await self.req.json()

    def to_json(self) -> dict[str, Any]:
        return {"method": self.method, "url": self.url, "header": dict(self.headers)}

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.url}>"
