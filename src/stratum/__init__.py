"""stratum - a minimal ASGI framework built around an onion middleware chain."""

from stratum.application import Application, respond
from stratum.compose import compose
from stratum.config import AppConfig
from stratum.context import Context
from stratum.convert import convert, is_legacy
from stratum.exceptions import (
    ContinuationError,
    HandlerFailure,
    HttpError,
    InvalidMiddlewareError,
    NonErrorThrownError,
    StratumException,
    TransportFailure,
)
from stratum.request import Request
from stratum.response import Response
from stratum.transport import RawRequest, RawResponse, serve

__all__ = [
    "AppConfig",
    "Application",
    "Context",
    "ContinuationError",
    "HandlerFailure",
    "HttpError",
    "InvalidMiddlewareError",
    "NonErrorThrownError",
    "RawRequest",
    "RawResponse",
    "Request",
    "Response",
    "StratumException",
    "TransportFailure",
    "compose",
    "convert",
    "is_legacy",
    "respond",
    "serve",
]
