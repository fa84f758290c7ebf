import abc
import asyncio
import enum
import logging
import ssl

from .base import (
    ConnectError,
    ConnectionClosedError,
    Request,
    ResolutionError,
    Response,
    WriteError,
)
from .codec import DEFAULT_MAX_LINE_SIZE, ResponseParser, serialize_request
from .connection import AsyncioConnector, Connection, Connector
from .resolver import Address
from .utils import close_single, perf_counter, perf_counter_elapsed

logger = logging.getLogger(__package__)

DEFAULT_READ_CHUNK_SIZE = 64 * 1024


class Transport(abc.ABC):
    __slots__ = ()

    @abc.abstractmethod
    async def send(self, request: Request) -> Response: ...


class SendStage(str, enum.Enum):
    RESOLVING = "resolving"
    CONNECTING = "connecting"
    WRITING = "writing"
    READING = "reading"
    PARSED = "parsed"


class HttpTransport(Transport):
    """Sends a request over a dedicated connection and buffers the whole response.

    Every call owns its connection: it is opened for the exchange and closed when the
    exchange completes, fails or the awaiting task is cancelled.
    """

    __slots__ = ("__connector", "__max_line_size", "__read_chunk_size", "__ssl_context")

    def __init__(
        self,
        connector: Connector | None = None,
        *,
        ssl_context: ssl.SSLContext | None = None,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        max_line_size: int = DEFAULT_MAX_LINE_SIZE,
    ) -> None:
        if read_chunk_size <= 0:
            raise ValueError("read_chunk_size should be positive")

        self.__connector = connector or AsyncioConnector()
        self.__ssl_context = ssl_context
        self.__read_chunk_size = read_chunk_size
        self.__max_line_size = max_line_size

    async def send(self, request: Request) -> Response:
        method = request.method
        url = request.url
        started_at = perf_counter()
        stage = SendStage.RESOLVING

        logger.debug(
            "Sending request %s %s",
            method,
            url,
            extra={
                "request_method": method,
                "request_url": url,
            },
        )
        try:
            host = url.raw_host
            port = url.port
            if host is None or port is None:
                raise RuntimeError(f"Request url {url} has no host or port")
            addresses = await self.__resolve(host, port)

            stage = SendStage.CONNECTING
            connection = await self.__connect(addresses, host, self.__get_ssl_context(url.scheme))
            try:
                stage = SendStage.WRITING
                await self.__write(connection, serialize_request(request))

                stage = SendStage.READING
                response = await self.__read(connection, ResponseParser(method, max_line_size=self.__max_line_size))
            finally:
                await asyncio.shield(close_single(connection))
            stage = SendStage.PARSED
        except Exception:
            logger.debug(
                "Request %s %s has failed while %s",
                method,
                url,
                stage.value,
                exc_info=True,
                extra={
                    "request_method": method,
                    "request_url": url,
                    "request_stage": stage,
                },
            )
            raise

        logger.debug(
            "Request %s %s has completed with status %s in %.3fs",
            method,
            url,
            response.status,
            perf_counter_elapsed(started_at),
            extra={
                "request_method": method,
                "request_url": url,
                "response_status": response.status,
                "request_stage": stage,
            },
        )
        return response

    async def __resolve(self, host: str, port: int) -> list[Address]:
        try:
            addresses = await self.__connector.resolve(host, port)
        except OSError as e:
            raise ResolutionError(f"Cannot resolve {host}: {e}") from e
        if not addresses:
            raise ResolutionError(f"No addresses found for {host}")
        return addresses

    async def __connect(self, addresses: list[Address], host: str, ssl_context: ssl.SSLContext | None) -> Connection:
        last_error: OSError | None = None
        for address in addresses:
            try:
                return await self.__connector.connect(address, ssl=ssl_context, server_hostname=host)
            except OSError as e:
                logger.debug("Cannot connect to %s:%s", address.host, address.port, exc_info=True)
                last_error = e
        raise ConnectError(f"Cannot connect to {host}: {last_error}") from last_error

    @staticmethod
    async def __write(connection: Connection, data: bytes) -> None:
        try:
            await connection.write(data)
        except OSError as e:
            raise WriteError(f"Cannot write request: {e}") from e

    async def __read(self, connection: Connection, parser: ResponseParser) -> Response:
        while True:
            try:
                data = await connection.read(self.__read_chunk_size)
            except OSError as e:
                raise ConnectionClosedError(f"Connection lost while reading response: {e}") from e
            if not data:
                parser.feed_eof()
                break
            if parser.feed(data):
                break
        return parser.build_response()

    def __get_ssl_context(self, scheme: str) -> ssl.SSLContext | None:
        if scheme != "https":
            return None
        if self.__ssl_context is None:
            self.__ssl_context = ssl.create_default_context()
        return self.__ssl_context
