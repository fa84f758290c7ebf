import asyncio
import logging

import aiohttp.web
import aiohttp.web_request
import aiohttp.web_response

import aio_fetch

logging.basicConfig(level="DEBUG")

routes = aiohttp.web.RouteTableDef()


@routes.get("/")
async def hello(request: aiohttp.web_request.Request) -> aiohttp.web_response.Response:
    transport = request.app["transport"]
    try:
        async with asyncio.timeout(5):
            response = await aio_fetch.get("https://httpbin.org/get").param("source", "example").send(transport)
    except (aio_fetch.TransportError, aio_fetch.ParseError, TimeoutError) as e:
        return aiohttp.web.Response(status=502, text=str(e))
    return aiohttp.web.json_response({"status": response.status, "body": response.json()})


async def create_app() -> aiohttp.web.Application:
    async def set_up_aio_fetch(app: aiohttp.web.Application) -> None:
        resolver = aio_fetch.CachingResolver(aio_fetch.AioHttpResolver())
        app["transport"] = aio_fetch.HttpTransport(aio_fetch.AsyncioConnector(resolver))
        yield
        await resolver.close()

    app = aiohttp.web.Application()
    app.cleanup_ctx.append(set_up_aio_fetch)
    app.add_routes(routes)

    return app


aiohttp.web.run_app(create_app())
