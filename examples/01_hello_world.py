"""
Basic usage example of stratum.

Demonstrates:
- Registering middleware with app.use()
- Downstream/upstream flow around await next()
- Setting the response body and headers from the context
"""

import time

from stratum import Application

app = Application()


async def response_time(ctx, next):
    """Measure how long the rest of the chain takes."""
    start = time.perf_counter()
    await next()
    elapsed_ms = (time.perf_counter() - start) * 1000
    ctx.set("X-Response-Time", f"{elapsed_ms:.2f}ms")


async def hello(ctx, next):
    """Answer every request."""
    if ctx.path == "/json":
        ctx.body = {"message": "Hello, World!", "ip": ctx.ip}
    else:
        ctx.body = "Hello, World!"


app.use(response_time)
app.use(hello)


if __name__ == "__main__":
    app.listen(host="0.0.0.0", port=8000)

    # Test with:
    # curl -i http://localhost:8000/
    # curl -i http://localhost:8000/json
