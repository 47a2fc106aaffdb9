"""Tests for the Response template: status, body and header semantics."""

from __future__ import annotations

import io
from typing import Any

import pytest

from stratum.response import content_type


async def _chunks() -> Any:
    yield b"a"
    yield b"b"


class TestStatus:
    def test_set_status_sets_message(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.status = 201
        assert ctx.status == 201
        assert ctx.res.reason == "Created"
        assert ctx.message == "Created"

    def test_status_message_omitted_for_http2(self, make_context: Any) -> None:
        ctx, _ = make_context(http_version="2")
        ctx.status = 201
        assert ctx.res.reason is None
        assert ctx.message == "Created"

    def test_custom_message(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.status = 200
        ctx.message = "Fine"
        assert ctx.message == "Fine"

    @pytest.mark.parametrize("code", [99, 1000, -1])
    def test_out_of_range_rejected(self, make_context: Any, code: int) -> None:
        ctx, _ = make_context()
        with pytest.raises(ValueError):
            ctx.status = code

    def test_non_int_rejected(self, make_context: Any) -> None:
        ctx, _ = make_context()
        with pytest.raises(TypeError):
            ctx.status = "200"

    def test_empty_status_clears_body(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.body = "content"
        ctx.status = 304
        assert ctx.body is None
        assert not ctx.has("Content-Type")

    async def test_ignored_after_headers_sent(self, make_context: Any) -> None:
        ctx, _ = make_context()
        await ctx.res.write(b"x")
        ctx.status = 500
        assert ctx.status == 200


class TestBody:
    def test_string_body(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.res.status_code = 404
        ctx.body = "héllo"
        assert ctx.status == 200
        assert ctx.type == "text/plain"
        assert ctx.length == len("héllo".encode())

    def test_html_body(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.body = "<p>hi</p>"
        assert ctx.type == "text/html"

    def test_bytes_body(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.body = b"\x00\x01\x02"
        assert ctx.type == "application/octet-stream"
        assert ctx.length == 3

    def test_stream_body(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.set("Content-Length", "10")
        ctx.body = _chunks()
        assert ctx.type == "application/octet-stream"
        assert not ctx.has("Content-Length")
        assert ctx.length is None

    def test_file_like_is_a_stream(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.body = io.BytesIO(b"data")
        assert ctx.type == "application/octet-stream"

    def test_json_body(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.body = {"a": 1}
        assert ctx.type == "application/json"
        assert not ctx.has("Content-Length")
        assert ctx.length == len(b'{"a":1}')

    def test_existing_type_is_kept(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.type = "xml"
        ctx.body = "<a/>"
        assert ctx.type in ("application/xml", "text/xml")

    def test_explicit_status_is_kept(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.status = 201
        ctx.body = "made"
        assert ctx.status == 201

    def test_none_body_sets_204(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.body = "x"
        ctx.body = None
        assert ctx.status == 204
        assert not ctx.has("Content-Type")
        assert not ctx.has("Content-Length")


class TestHeaders:
    def test_set_mapping(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.set({"X-A": "1", "X-B": 2})
        assert ctx.response.get("x-a") == "1"
        assert ctx.response.get("X-B") == "2"

    def test_set_list_creates_multiple_values(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.set("Set-Cookie", ["a=1", "b=2"])
        assert ctx.response.headers.getlist("set-cookie") == ["a=1", "b=2"]

    def test_append(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.append("Vary", "Accept")
        ctx.append("Vary", ["Origin"])
        assert ctx.response.headers.getlist("vary") == ["Accept", "Origin"]

    def test_length_not_set_with_transfer_encoding(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.set("Transfer-Encoding", "chunked")
        ctx.length = 5
        assert not ctx.has("Content-Length")


class TestRedirect:
    def test_redirect(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.redirect("/login")
        assert ctx.status == 302
        assert ctx.response.get("Location") == "/login"
        assert ctx.body == "Redirecting to /login."

    def test_redirect_back_uses_referrer(self, make_context: Any) -> None:
        ctx, _ = make_context(headers={"Referer": "/prev"})
        ctx.redirect("back", "/home")
        assert ctx.response.get("Location") == "/prev"

    def test_keeps_redirect_status(self, make_context: Any) -> None:
        ctx, _ = make_context()
        ctx.status = 301
        ctx.redirect("/moved")
        assert ctx.status == 301


class TestContentType:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("text", "text/plain; charset=utf-8"),
            ("json", "application/json; charset=utf-8"),
            ("bin", "application/octet-stream"),
            ("image/png", "image/png"),
            ("png", "image/png"),
            (".html", "text/html; charset=utf-8"),
        ],
    )
    def test_resolution(self, value: str, expected: str) -> None:
        assert content_type(value) == expected

    def test_unknown_extension(self) -> None:
        assert content_type("definitely-not-a-type") is None
