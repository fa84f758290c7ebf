import socket

import aiohttp
import aiohttp.abc

from .resolver import Address, Resolver


class AioHttpResolver(Resolver):
    """Exposes any aiohttp resolver (threaded, aiodns based or custom) as a `Resolver`"""

    __slots__ = ("__family", "__resolver")

    def __init__(
        self,
        resolver: aiohttp.abc.AbstractResolver | None = None,
        *,
        family: socket.AddressFamily = socket.AF_INET,
    ) -> None:
        self.__resolver = resolver or aiohttp.DefaultResolver()
        self.__family = family

    async def resolve(self, host: str, port: int) -> list[Address]:
        results = await self.__resolver.resolve(host, port, self.__family)
        return [Address(result["host"], result["port"], result["family"]) for result in results]

    async def close(self) -> None:
        await self.__resolver.close()
