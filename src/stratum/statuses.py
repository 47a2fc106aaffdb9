"""HTTP status classification and reason phrases."""

from __future__ import annotations

from http import HTTPStatus

EMPTY: frozenset[int] = frozenset({204, 205, 304})
REDIRECT: frozenset[int] = frozenset({300, 301, 302, 303, 305, 307, 308})


def message(code: int) -> str | None:
    """Return the default reason phrase for ``code``, if it is a known status."""
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return None


def is_empty(code: int) -> bool:
    return code in EMPTY


def is_redirect(code: int) -> bool:
    return code in REDIRECT
