"""Shared pytest fixtures for stratum tests."""

from __future__ import annotations

from typing import Any

import pytest
from starlette.types import Message

from stratum.application import Application
from stratum.context import Context
from stratum.transport import RawRequest, RawResponse


class RecordingSend:
    """ASGI send callable that keeps every message it is given."""

    def __init__(self) -> None:
        self.messages: list[Message] = []

    async def __call__(self, message: Message) -> None:
        self.messages.append(message)

    @property
    def start(self) -> Message | None:
        for message in self.messages:
            if message["type"] == "http.response.start":
                return message
        return None

    @property
    def status(self) -> int | None:
        start = self.start
        return start["status"] if start else None

    @property
    def headers(self) -> dict[str, str]:
        start = self.start
        if start is None:
            return {}
        return {k.decode("latin-1"): v.decode("latin-1") for k, v in start["headers"]}

    @property
    def body(self) -> bytes:
        return b"".join(
            m.get("body", b"") for m in self.messages if m["type"] == "http.response.body"
        )

    @property
    def completed(self) -> bool:
        return any(
            m["type"] == "http.response.body" and not m.get("more_body", False)
            for m in self.messages
        )


def build_scope(
    method: str = "GET",
    path: str = "/",
    headers: dict[str, str] | None = None,
    query_string: str = "",
    http_version: str = "1.1",
    scheme: str = "http",
    client: tuple[str, int] | None = ("127.0.0.1", 50000),
) -> dict[str, Any]:
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": http_version,
        "method": method,
        "scheme": scheme,
        "path": path,
        "raw_path": path.encode(),
        "query_string": query_string.encode(),
        "headers": [
            (k.lower().encode(), v.encode()) for k, v in (headers or {}).items()
        ],
        "root_path": "",
        "client": client,
        "server": ("testserver", 80),
    }


async def _empty_receive() -> Message:
    return {"type": "http.request", "body": b"", "more_body": False}


@pytest.fixture
def make_scope() -> Any:
    """Factory for raw ASGI HTTP scopes."""
    return build_scope


@pytest.fixture
def make_raw() -> Any:
    """Factory for a transport request/response pair with a recording send."""

    def _make(**scope_kwargs: Any) -> tuple[RawRequest, RawResponse, RecordingSend]:
        send = RecordingSend()
        return RawRequest(build_scope(**scope_kwargs), _empty_receive), RawResponse(send), send

    return _make


@pytest.fixture
def recording_send() -> RecordingSend:
    return RecordingSend()


@pytest.fixture
def app() -> Application:
    return Application(env="test")


@pytest.fixture
def make_context(app: Application, make_raw: Any) -> Any:
    """Factory for a fully cross-linked context bound to the ``app`` fixture."""

    def _make(**scope_kwargs: Any) -> tuple[Context, RecordingSend]:
        req, res, send = make_raw(**scope_kwargs)
        return app.create_context(req, res), send

    return _make

