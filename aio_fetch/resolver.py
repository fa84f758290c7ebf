import abc
import asyncio
import contextlib
import ipaddress
import socket
from typing import NamedTuple

from .utils import Closable


class Address(NamedTuple):
    host: str
    port: int
    family: socket.AddressFamily = socket.AF_INET


class Resolver(Closable):
    __slots__ = ()

    @abc.abstractmethod
    async def resolve(self, host: str, port: int) -> list[Address]: ...

    async def close(self) -> None:
        pass


class AsyncioResolver(Resolver):
    __slots__ = ("__family",)

    def __init__(self, *, family: socket.AddressFamily = socket.AF_UNSPEC) -> None:
        self.__family = family

    async def resolve(self, host: str, port: int) -> list[Address]:
        try:
            ip_address = ipaddress.ip_address(host)
        except ValueError:
            pass
        else:
            family = socket.AF_INET6 if ip_address.version == 6 else socket.AF_INET
            return [Address(host, port, family)]

        infos = await asyncio.get_running_loop().getaddrinfo(
            host, port, family=self.__family, type=socket.SOCK_STREAM
        )
        addresses: list[Address] = []
        for family, _, _, _, sockaddr in infos:
            address = Address(str(sockaddr[0]), int(sockaddr[1]), family)
            if address not in addresses:
                addresses.append(address)
        return addresses


class CachingResolver(Resolver):
    """Serves resolved addresses from memory and refreshes them in the background.

    An entry is evicted after `max_failures` consecutive failed refreshes, so the next
    `resolve` goes to the wrapped resolver again. Must be created within a running loop.
    """

    __slots__ = ("__interval", "__max_failures", "__resolver", "__results", "__task")

    def __init__(
        self,
        resolver: Resolver,
        *,
        interval: float = 30,
        max_failures: int = 3,
    ) -> None:
        if interval <= 0:
            raise RuntimeError("Interval should be positive")
        if max_failures <= 0:
            raise RuntimeError("Max failures should be positive")

        self.__interval = interval
        self.__resolver = resolver
        self.__results: dict[tuple[str, int], list[Address]] = {}
        self.__max_failures = max_failures
        self.__task = asyncio.create_task(self._refresh())

    def resolve_no_wait(self, host: str, port: int) -> list[Address] | None:
        return self.__results.get((host, port))

    async def resolve(self, host: str, port: int) -> list[Address]:
        key = (host, port)
        addresses = self.__results.get(key)
        if addresses is not None:
            return addresses
        addresses = await self.__resolver.resolve(host, port)
        if addresses:
            self.__results[key] = addresses
        return addresses

    async def close(self) -> None:
        self.__task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self.__task
        await self.__resolver.close()

    async def _refresh(self) -> None:
        failures: dict[tuple[str, int], int] = {}
        while True:
            await asyncio.sleep(self.__interval)

            keys = list(self.__results)
            results = await asyncio.gather(
                *(self.__resolver.resolve(host, port) for host, port in keys), return_exceptions=True
            )
            for key, result in zip(keys, results):
                if isinstance(result, list) and result:
                    failures.pop(key, None)
                    self.__results[key] = result
                    continue

                failures[key] = failures.get(key, 0) + 1
                if failures[key] >= self.__max_failures:
                    del failures[key]
                    self.__results.pop(key, None)
