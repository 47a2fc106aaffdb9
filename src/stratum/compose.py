"""compose() — fold an ordered middleware list into one onion-shaped callable."""

from __future__ import annotations

import inspect
from collections.abc import Iterable
from typing import TYPE_CHECKING

from stratum._types import ComposedMiddleware, Middleware, Next
from stratum.exceptions import ContinuationError, InvalidMiddlewareError

if TYPE_CHECKING:
    from stratum.context import Context


def compose(middleware: Iterable[Middleware]) -> ComposedMiddleware:
    """Compose middleware into a single ``(ctx, next=None)`` coroutine function.

    Entry 1 runs first; awaiting its continuation runs entry 2 and so on.
    Code after the await runs in reverse order once the inner entries have
    completed. An entry that does not call its continuation skips every
    entry after it.
    """
    stack = tuple(middleware)
    for fn in stack:
        if not callable(fn):
            raise InvalidMiddlewareError("Middleware must be composed of callables")

    async def composed(ctx: Context, next: Next | None = None) -> None:
        index = -1

        async def dispatch(i: int) -> None:
            nonlocal index
            if i <= index:
                raise ContinuationError("next() called multiple times")
            index = i

            if i < len(stack):
                fn = stack[i]
                result = fn(ctx, lambda: dispatch(i + 1))
            elif next is not None:
                result = next()
            else:
                return

            if inspect.isawaitable(result):
                await result

        await dispatch(0)

    return composed
