"""
Streaming and legacy middleware example of stratum.

Demonstrates:
- Generator-style middleware (converted automatically, with a warning)
- Streaming bodies from async generators and files
- Taking over the transport with ctx.respond = False
- Reading settings from STRATUM_* environment variables
"""

import asyncio

from stratum import AppConfig, Application

app = Application(AppConfig.from_env())


def access_log(ctx):
    """Old-style middleware: code after ``yield`` runs upstream."""
    print(f"--> {ctx.method} {ctx.url}")
    yield
    print(f"<-- {ctx.method} {ctx.url} {ctx.status}")


async def ticker():
    for i in range(5):
        yield f"tick {i}\n"
        await asyncio.sleep(0.5)


async def routes(ctx, next):
    if ctx.path == "/ticks":
        ctx.type = "text"
        ctx.body = ticker()
    elif ctx.path == "/source":
        ctx.type = "py"
        ctx.body = open(__file__, "rb")  # noqa: SIM115 - closed after streaming
    elif ctx.path == "/raw":
        ctx.respond = False
        ctx.res.status_code = 200
        ctx.res.headers["content-type"] = "text/plain"
        await ctx.res.write(b"written ")
        await ctx.res.end(b"by hand\n")
    else:
        await next()


app.use(access_log)
app.use(routes)


if __name__ == "__main__":
    app.listen(host="0.0.0.0", port=8000)

    # Test with:
    # curl -N http://localhost:8000/ticks
    # curl http://localhost:8000/source
    # curl http://localhost:8000/raw
    # curl -i http://localhost:8000/missing
