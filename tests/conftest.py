import asyncio
import contextlib
import logging
import socket
import ssl
import struct
from collections.abc import AsyncIterator, Callable, Sequence

import pytest

import aio_fetch

logging.basicConfig(level="DEBUG")


class FakeConnection(aio_fetch.Connection):
    """Replays the given fragments, then reports end of stream"""

    def __init__(
        self,
        *fragments: bytes,
        hang: bool = False,
        write_error: OSError | None = None,
        read_error: OSError | None = None,
    ) -> None:
        self.fragments = list(fragments)
        self.hang = hang
        self.write_error = write_error
        self.read_error = read_error
        self.written = bytearray()
        self.reads = 0
        self.read_started = asyncio.Event()
        self.closed = False

    async def read(self, size: int) -> bytes:
        self.reads += 1
        self.read_started.set()
        if self.fragments:
            return self.fragments.pop(0)
        if self.read_error is not None:
            raise self.read_error
        if self.hang:
            await asyncio.Event().wait()
        return b""

    async def write(self, data: bytes) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.written += data

    async def close(self) -> None:
        self.closed = True


class FakeConnector(aio_fetch.Connector):
    def __init__(
        self,
        *connections: FakeConnection | OSError,
        addresses: Sequence[aio_fetch.Address] | OSError | None = None,
    ) -> None:
        self.connections = list(connections)
        self.addresses = addresses
        self.resolve_calls: list[tuple[str, int]] = []
        self.connect_calls: list[tuple[aio_fetch.Address, ssl.SSLContext | None, str | None]] = []

    async def resolve(self, host: str, port: int) -> list[aio_fetch.Address]:
        self.resolve_calls.append((host, port))
        if isinstance(self.addresses, OSError):
            raise self.addresses
        if self.addresses is None:
            return [aio_fetch.Address("127.0.0.1", port)]
        return list(self.addresses)

    async def connect(
        self,
        address: aio_fetch.Address,
        *,
        ssl: ssl.SSLContext | None = None,
        server_hostname: str | None = None,
    ) -> aio_fetch.Connection:
        self.connect_calls.append((address, ssl, server_hostname))
        if not self.connections:
            raise ConnectionRefusedError("No connection left")
        connection = self.connections.pop(0)
        if isinstance(connection, OSError):
            raise connection
        return connection


@pytest.fixture(scope="session")
def unused_port() -> Callable[[], int]:
    def f() -> int:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            return s.getsockname()[1]

    return f


class RawServer:
    """Replies to every request with the same raw bytes and records what it received"""

    def __init__(self, port: int) -> None:
        self.port = port
        self.requests: list[aio_fetch.ReceivedRequest] = []

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}"


@pytest.fixture
async def raw_server_factory(
    unused_port: Callable[[], int],
) -> AsyncIterator[Callable[[bytes], contextlib.AbstractAsyncContextManager[RawServer]]]:
    @contextlib.asynccontextmanager
    async def run_server(response: bytes) -> AsyncIterator[RawServer]:
        server = RawServer(unused_port())

        async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            try:
                parser = aio_fetch.RequestParser()
                while not parser.is_complete:
                    data = await reader.read(1024)
                    if not data:
                        return
                    parser.feed(data)
                server.requests.append(parser.build_request())
                writer.write(response)
                await writer.drain()
            finally:
                writer.close()

        server_handle = await asyncio.start_server(handle, "127.0.0.1", server.port)

        yield server

        server_handle.close()
        await server_handle.wait_closed()

    yield run_server


@pytest.fixture
async def resetting_server_factory() -> AsyncIterator[Callable[[int], contextlib.AbstractAsyncContextManager[None]]]:
    @contextlib.asynccontextmanager
    async def run_server(port: int) -> AsyncIterator[None]:
        async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            try:
                await reader.read(1)
                sock = writer.get_extra_info("socket")
                assert sock
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
            finally:
                writer.close()

        server_handle = await asyncio.start_server(handle, "127.0.0.1", port)

        yield

        server_handle.close()
        await server_handle.wait_closed()

    yield run_server
