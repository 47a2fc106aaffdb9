"""convert() — adapt legacy generator middleware to the ``(ctx, next)`` shape.

Legacy middleware is a generator (or async generator) function taking the
context. Code before the ``yield`` runs on the way in, the ``yield`` hands
control downstream, and code after it runs on the way out. Exceptions raised
downstream are thrown back into the generator at the ``yield``.
"""

from __future__ import annotations

import functools
import inspect
from collections.abc import AsyncGenerator, Callable, Generator
from typing import TYPE_CHECKING, Any

from stratum._types import Middleware, Next

if TYPE_CHECKING:
    from stratum.context import Context

LegacyMiddleware = Callable[..., Generator[Any, Any, Any] | AsyncGenerator[Any, Any]]


def is_legacy(fn: Any) -> bool:
    """True for generator-based middleware that needs converting."""
    return inspect.isgeneratorfunction(fn) or inspect.isasyncgenfunction(fn)


def convert(fn: LegacyMiddleware) -> Middleware:
    """Wrap a legacy generator middleware; non-legacy callables are returned as-is."""
    if inspect.isasyncgenfunction(fn):
        converted = _convert_async(fn)
    elif inspect.isgeneratorfunction(fn):
        converted = _convert_sync(fn)
    else:
        return fn

    functools.update_wrapper(converted, fn)
    converted._legacy = fn  # type: ignore[attr-defined]
    return converted


def _convert_sync(fn: LegacyMiddleware) -> Middleware:
    async def converted(ctx: Context, next: Next) -> None:
        gen = fn(ctx)
        try:
            gen.send(None)  # type: ignore[union-attr]
        except StopIteration:
            return

        try:
            await next()
        except Exception as exc:
            try:
                gen.throw(exc)  # type: ignore[union-attr]
            except StopIteration:
                return
        else:
            try:
                gen.send(None)  # type: ignore[union-attr]
            except StopIteration:
                return

        gen.close()  # type: ignore[union-attr]
        raise RuntimeError(f"legacy middleware {fn.__name__!r} yielded more than once")

    return converted


def _convert_async(fn: LegacyMiddleware) -> Middleware:
    async def converted(ctx: Context, next: Next) -> None:
        gen = fn(ctx)
        try:
            await gen.asend(None)  # type: ignore[union-attr]
        except StopAsyncIteration:
            return

        try:
            await next()
        except Exception as exc:
            try:
                await gen.athrow(exc)  # type: ignore[union-attr]
            except StopAsyncIteration:
                return
        else:
            try:
                await gen.asend(None)  # type: ignore[union-attr]
            except StopAsyncIteration:
                return

        await gen.aclose()  # type: ignore[union-attr]
        raise RuntimeError(f"legacy middleware {fn.__name__!r} yielded more than once")

    return converted
