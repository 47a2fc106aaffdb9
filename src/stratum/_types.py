"""Shared type aliases and protocols."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stratum.context import Context

# Continuation handed to each middleware; awaiting it runs everything downstream
Next = Callable[[], Awaitable[None]]

Middleware = Callable[["Context", Next], Awaitable[None] | None]
ComposedMiddleware = Callable[..., Awaitable[None]]

# Error sink subscribers receive the failure and, when known, the request context
ErrorListener = Callable[[Any, "Context | None"], Awaitable[None] | None]
