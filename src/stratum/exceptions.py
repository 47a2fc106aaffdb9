"""StratumException hierarchy for registration, traversal and transport failures."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import ClientDisconnect

from stratum import statuses


class StratumException(Exception):
    """Base for all stratum exceptions."""


class InvalidMiddlewareError(StratumException, TypeError):
    """A non-callable value was registered as middleware."""


class NonErrorThrownError(StratumException, TypeError):
    """A value that is not an exception reached the error sink."""


class ContinuationError(StratumException):
    """A middleware invoked its continuation more than once."""


class HandlerFailure(StratumException):
    """Error raised by a handler while the chain was being traversed."""

    def __init__(
        self,
        detail: str,
        *,
        status: int = 500,
        expose: bool = False,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status = status
        self.expose = expose
        self.cause = cause


class HttpError(HandlerFailure):
    """Controlled failure carrying an HTTP status for the client."""

    def __init__(
        self,
        status: int = 500,
        detail: str | None = None,
        *,
        expose: bool | None = None,
        headers: Mapping[str, str] | None = None,
        **props: Any,
    ) -> None:
        if detail is None:
            detail = statuses.message(status) or str(status)
        if expose is None:
            expose = status < 500
        super().__init__(detail, status=status, expose=expose)
        self.headers = dict(headers or {})
        for key, value in props.items():
            setattr(self, key, value)


class TransportFailure(StratumException):
    """The connection errored or closed before the response completed."""

    def __init__(self, detail: str, *, cause: BaseException | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.cause = cause


def as_failure(exc: BaseException) -> StratumException:
    """Normalize an exception raised during traversal for the error sink."""
    if isinstance(exc, StratumException):
        return exc

    if isinstance(exc, ClientDisconnect):
        lost = TransportFailure("client disconnected while the body was read", cause=exc)
        lost.__cause__ = exc
        return lost

    failure: HandlerFailure
    if isinstance(exc, StarletteHTTPException):
        failure = HttpError(exc.status_code, exc.detail, headers=exc.headers)
    else:
        status = getattr(exc, "status", None)
        if isinstance(exc, FileNotFoundError):
            status = 404
        if not isinstance(status, int) or isinstance(status, bool):
            status = 500
        failure = HandlerFailure(
            str(exc) or type(exc).__name__,
            status=status,
            expose=bool(getattr(exc, "expose", False)),
            cause=exc,
        )
    failure.cause = exc
    failure.__cause__ = exc
    return failure
