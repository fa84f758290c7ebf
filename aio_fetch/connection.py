import abc
import asyncio
import ssl

from .resolver import Address, AsyncioResolver, Resolver
from .utils import Closable


class Connection(Closable):
    __slots__ = ()

    @abc.abstractmethod
    async def read(self, size: int) -> bytes:
        """Returns at most `size` bytes, empty bytes once the peer has closed the stream"""

    @abc.abstractmethod
    async def write(self, data: bytes) -> None:
        """Returns once every byte has been handed over to the transport"""


class Connector(abc.ABC):
    __slots__ = ()

    @abc.abstractmethod
    async def resolve(self, host: str, port: int) -> list[Address]: ...

    @abc.abstractmethod
    async def connect(
        self,
        address: Address,
        *,
        ssl: ssl.SSLContext | None = None,
        server_hostname: str | None = None,
    ) -> Connection: ...


class StreamConnection(Connection):
    __slots__ = ("__reader", "__writer")

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.__reader = reader
        self.__writer = writer

    async def read(self, size: int) -> bytes:
        return await self.__reader.read(size)

    async def write(self, data: bytes) -> None:
        self.__writer.write(data)
        await self.__writer.drain()

    async def close(self) -> None:
        if self.__writer.is_closing():
            return
        self.__writer.close()
        await self.__writer.wait_closed()


class AsyncioConnector(Connector):
    __slots__ = ("__resolver",)

    def __init__(self, resolver: Resolver | None = None) -> None:
        self.__resolver = resolver or AsyncioResolver()

    async def resolve(self, host: str, port: int) -> list[Address]:
        return await self.__resolver.resolve(host, port)

    async def connect(
        self,
        address: Address,
        *,
        ssl: ssl.SSLContext | None = None,
        server_hostname: str | None = None,
    ) -> Connection:
        reader, writer = await asyncio.open_connection(
            address.host,
            address.port,
            family=address.family,
            ssl=ssl,
            server_hostname=server_hostname if ssl is not None else None,
        )
        return StreamConnection(reader, writer)
