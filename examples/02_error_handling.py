"""
Error handling example of stratum.

Demonstrates:
- ctx.throw() / ctx.assert_() for client errors
- Recovering from downstream failures in upstream middleware
- Subscribing a custom error listener
"""

import logging

from stratum import Application, HttpError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("example")

app = Application()


@app.on_error
def report(err, ctx):
    """Send failures somewhere useful (here: the log)."""
    if getattr(err, "expose", False):
        return
    logger.warning("request %s failed: %r", ctx.url if ctx else "-", err)


async def error_page(ctx, next):
    """Render HTTP errors as JSON instead of plain text."""
    try:
        await next()
    except HttpError as exc:
        ctx.status = exc.status
        ctx.body = {"error": exc.detail}


async def require_token(ctx, next):
    ctx.assert_(ctx.get("Authorization") == "Bearer secret", 401, "Missing or invalid token")
    await next()


async def handler(ctx, next):
    if ctx.path == "/boom":
        raise RuntimeError("unexpected failure")
    if ctx.path == "/teapot":
        ctx.throw(418, "I'm a teapot", reason="short and stout")
    ctx.body = {"ok": True}


app.use(error_page).use(require_token).use(handler)


if __name__ == "__main__":
    app.listen(host="0.0.0.0", port=8000)

    # Test with:
    # curl -i http://localhost:8000/
    # curl -i -H "Authorization: Bearer secret" http://localhost:8000/
    # curl -i -H "Authorization: Bearer secret" http://localhost:8000/teapot
    # curl -i -H "Authorization: Bearer secret" http://localhost:8000/boom
