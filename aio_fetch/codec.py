"""HTTP/1.1 wire codec.

`serialize_request` turns a `Request` into the exact bytes written to a connection.
`ResponseParser` (and `RequestParser` for the other side of the exchange) consume bytes
incrementally: every `feed` resumes from the state the previous one stopped in, so data
may arrive split at any byte boundary.
"""

import abc
import enum
import re
from typing import NamedTuple

import multidict
import yarl

from .base import ConnectionClosedError, Header, Method, ParseError, Request, Response, token_re
from .utils import try_parse_int

HTTP_VERSION = "HTTP/1.1"
DEFAULT_MAX_LINE_SIZE = 8190

status_line_re = re.compile(r"^HTTP/([0-9])\.([0-9]) ([0-9]{3})(?: (.*))?$")
request_line_re = re.compile(r"^([!#$%&'*+\-.^_`|~0-9A-Za-z]+) (\S+) HTTP/([0-9])\.([0-9])$")
chunk_size_re = re.compile(rb"[0-9A-Fa-f]+")

_FRAMING_HEADERS = frozenset((Header.CONTENT_LENGTH.lower(), Header.TRANSFER_ENCODING.lower()))


def request_target(request: Request) -> str:
    url = request.url
    if request.query_parameters:
        url = url.extend_query(request.query_parameters)
    path = url.raw_path or "/"
    query = url.raw_query_string
    return f"{path}?{query}" if query else path


def host_header(url: yarl.URL) -> str:
    host = url.raw_host or ""
    if ":" in host:
        host = f"[{host}]"
    if not url.is_default_port():
        host = f"{host}:{url.port}"
    return host


def serialize_request(request: Request) -> bytes:
    headers = request.headers
    lines = [f"{request.method} {request_target(request)} {HTTP_VERSION}"]
    if Header.HOST not in headers:
        lines.append(f"{Header.HOST}: {host_header(request.url)}")
    if Header.CONNECTION not in headers:
        lines.append(f"{Header.CONNECTION}: close")
    lines.extend(f"{name}: {value}" for name, value in headers.items() if name.lower() not in _FRAMING_HEADERS)
    # the body is always sent whole, framed by its exact length
    if request.body is not None:
        lines.append(f"{Header.CONTENT_LENGTH}: {len(request.body)}")

    head = "\r\n".join(lines).encode("ascii") + b"\r\n\r\n"
    return head + request.body if request.body else head


class ParserState(enum.Enum):
    AWAITING_START_LINE = "awaiting start line"
    AWAITING_HEADERS = "awaiting headers"
    AWAITING_BODY = "awaiting body"
    COMPLETE = "complete"


class BodyMode(enum.Enum):
    CONTENT_LENGTH = "content-length"
    CHUNKED = "chunked"
    READ_UNTIL_CLOSE = "read until close"


class _ChunkState(enum.Enum):
    SIZE = "size"
    DATA = "data"
    DATA_END = "data end"
    TRAILERS = "trailers"


class _MessageParser(abc.ABC):
    __slots__ = (
        "_body",
        "_body_mode",
        "_buffer",
        "_chunk_state",
        "_headers",
        "_max_line_size",
        "_remaining",
        "_scanned",
        "_state",
    )

    def __init__(self, *, max_line_size: int = DEFAULT_MAX_LINE_SIZE) -> None:
        if max_line_size <= 0:
            raise ValueError("max_line_size should be positive")

        self._max_line_size = max_line_size
        self._buffer = bytearray()
        # Offset up to which the buffer is known to contain no line feed.
        self._scanned = 0
        self._reset()

    @property
    def state(self) -> ParserState:
        return self._state

    @property
    def body_mode(self) -> BodyMode | None:
        return self._body_mode

    @property
    def is_complete(self) -> bool:
        return self._state is ParserState.COMPLETE

    def feed(self, data: bytes) -> bool:
        if self._state is ParserState.COMPLETE:
            return True

        self._buffer += data
        while self._state is not ParserState.COMPLETE and self._advance():
            pass
        return self._state is ParserState.COMPLETE

    def feed_eof(self) -> None:
        if self._state is ParserState.COMPLETE:
            return
        if self._state is ParserState.AWAITING_BODY and self._body_mode is BodyMode.READ_UNTIL_CLOSE:
            self._state = ParserState.COMPLETE
            return
        raise ConnectionClosedError(f"Connection closed while {self._state.value}")

    @abc.abstractmethod
    def _on_start_line(self, line: bytes) -> None: ...

    @abc.abstractmethod
    def _on_headers_complete(self) -> None: ...

    def _reset(self) -> None:
        self._state = ParserState.AWAITING_START_LINE
        self._headers = multidict.CIMultiDict[str]()
        self._body = bytearray()
        self._body_mode: BodyMode | None = None
        self._remaining = 0
        self._chunk_state = _ChunkState.SIZE

    def _select(self, body_mode: BodyMode, length: int = 0) -> None:
        self._body_mode = body_mode
        self._remaining = length
        if body_mode is BodyMode.CONTENT_LENGTH and length == 0:
            self._state = ParserState.COMPLETE
        else:
            self._state = ParserState.AWAITING_BODY

    def _advance(self) -> bool:
        match self._state:
            case ParserState.AWAITING_START_LINE:
                line = self._read_line()
                if line is None:
                    return False
                if line:
                    self._on_start_line(line)
                    self._state = ParserState.AWAITING_HEADERS
                return True
            case ParserState.AWAITING_HEADERS:
                line = self._read_line()
                if line is None:
                    return False
                if line:
                    self._headers.add(*self._parse_header_line(line))
                else:
                    self._on_headers_complete()
                return True
            case ParserState.AWAITING_BODY:
                return self._read_body()
            case _:
                return False

    def _read_line(self) -> bytes | None:
        index = self._buffer.find(b"\n", self._scanned)
        if index < 0:
            if len(self._buffer) > self._max_line_size:
                raise ParseError(f"Line is longer than {self._max_line_size} bytes")
            self._scanned = len(self._buffer)
            return None
        if index > self._max_line_size:
            raise ParseError(f"Line is longer than {self._max_line_size} bytes")

        line = bytes(self._buffer[:index])
        del self._buffer[: index + 1]
        self._scanned = 0
        return line[:-1] if line.endswith(b"\r") else line

    @staticmethod
    def _parse_header_line(line: bytes) -> tuple[str, str]:
        name, separator, value = line.partition(b":")
        if not separator:
            raise ParseError(f"Header line without colon: {line!r}")
        decoded_name = name.decode("latin-1")
        if not token_re.fullmatch(decoded_name):
            raise ParseError(f"Invalid header name {decoded_name!r}")
        return decoded_name, value.strip(b" \t").decode("latin-1")

    def _content_length(self) -> int | None:
        values = self._headers.getall(Header.CONTENT_LENGTH, [])
        if not values:
            return None
        lengths = {try_parse_int(v.strip()) for value in values for v in value.split(",")}
        if None in lengths or len(lengths) != 1:
            raise ParseError(f"Invalid Content-Length {values!r}")
        return lengths.pop()

    def _transfer_codings(self) -> list[str]:
        return [
            coding.strip().lower()
            for value in self._headers.getall(Header.TRANSFER_ENCODING, [])
            for coding in value.split(",")
            if coding.strip()
        ]

    def _read_body(self) -> bool:
        match self._body_mode:
            case BodyMode.READ_UNTIL_CLOSE:
                if not self._buffer:
                    return False
                self._body += self._buffer
                self._buffer.clear()
                self._scanned = 0
                return True
            case BodyMode.CONTENT_LENGTH:
                progressed = self._take()
                if self._remaining == 0:
                    self._state = ParserState.COMPLETE
                return progressed
            case BodyMode.CHUNKED:
                return self._read_chunked()
            case _:
                return False

    def _take(self) -> bool:
        size = min(self._remaining, len(self._buffer))
        if size == 0:
            return False
        self._body += self._buffer[:size]
        del self._buffer[:size]
        self._scanned = 0
        self._remaining -= size
        return True

    def _read_chunked(self) -> bool:
        match self._chunk_state:
            case _ChunkState.SIZE:
                line = self._read_line()
                if line is None:
                    return False
                size = line.split(b";", 1)[0].strip(b" \t")
                if not chunk_size_re.fullmatch(size):
                    raise ParseError(f"Invalid chunk size {line!r}")
                self._remaining = int(size, 16)
                self._chunk_state = _ChunkState.DATA if self._remaining else _ChunkState.TRAILERS
                return True
            case _ChunkState.DATA:
                progressed = self._take()
                if self._remaining == 0:
                    self._chunk_state = _ChunkState.DATA_END
                    return True
                return progressed
            case _ChunkState.DATA_END:
                line = self._read_line()
                if line is None:
                    return False
                if line:
                    raise ParseError("Chunk data is not followed by CRLF")
                self._chunk_state = _ChunkState.SIZE
                return True
            case _ChunkState.TRAILERS:
                line = self._read_line()
                if line is None:
                    return False
                if line:
                    # trailer fields are validated and dropped
                    self._parse_header_line(line)
                else:
                    self._state = ParserState.COMPLETE
                return True
            case _:
                return False


class ResponseParser(_MessageParser):
    __slots__ = ("__method", "__reason", "__status", "__version")

    def __init__(self, method: str = Method.GET, *, max_line_size: int = DEFAULT_MAX_LINE_SIZE) -> None:
        self.__method = method.upper()
        self.__status = 0
        self.__reason = ""
        self.__version = (1, 1)
        super().__init__(max_line_size=max_line_size)

    @property
    def status(self) -> int:
        return self.__status

    @property
    def version(self) -> tuple[int, int]:
        return self.__version

    def build_response(self) -> Response:
        if self._state is not ParserState.COMPLETE:
            raise RuntimeError(f"Response is not complete, parser is {self._state.value}")

        return Response(
            status=self.__status,
            reason=self.__reason,
            headers=multidict.CIMultiDictProxy[str](self._headers),
            body=bytes(self._body),
        )

    def _on_start_line(self, line: bytes) -> None:
        match = status_line_re.match(line.decode("latin-1"))
        if match is None:
            raise ParseError(f"Malformed status line {line!r}")
        status = int(match.group(3))
        if not 100 <= status <= 599:
            raise ParseError(f"Status {status} is out of range 100..599")

        self.__version = (int(match.group(1)), int(match.group(2)))
        self.__status = status
        self.__reason = match.group(4) or ""

    def _on_headers_complete(self) -> None:
        status = self.__status
        if 100 <= status < 200 and status != 101:
            # interim response, the final one follows on the same connection
            self._reset()
            return
        if self.__method == Method.HEAD or status in (101, 204, 304):
            self._select(BodyMode.CONTENT_LENGTH, 0)
            return

        transfer_codings = self._transfer_codings()
        if transfer_codings:
            if transfer_codings[-1] == "chunked":
                self._select(BodyMode.CHUNKED)
            else:
                self._select(BodyMode.READ_UNTIL_CLOSE)
            return

        length = self._content_length()
        if length is None:
            self._select(BodyMode.READ_UNTIL_CLOSE)
        else:
            self._select(BodyMode.CONTENT_LENGTH, length)


class ReceivedRequest(NamedTuple):
    method: str
    target: str
    headers: multidict.CIMultiDictProxy[str]
    body: bytes


class RequestParser(_MessageParser):
    __slots__ = ("__method", "__target")

    def __init__(self, *, max_line_size: int = DEFAULT_MAX_LINE_SIZE) -> None:
        self.__method = ""
        self.__target = ""
        super().__init__(max_line_size=max_line_size)

    def build_request(self) -> ReceivedRequest:
        if self._state is not ParserState.COMPLETE:
            raise RuntimeError(f"Request is not complete, parser is {self._state.value}")

        return ReceivedRequest(
            method=self.__method,
            target=self.__target,
            headers=multidict.CIMultiDictProxy[str](self._headers),
            body=bytes(self._body),
        )

    def _on_start_line(self, line: bytes) -> None:
        match = request_line_re.match(line.decode("latin-1"))
        if match is None:
            raise ParseError(f"Malformed request line {line!r}")
        self.__method = match.group(1)
        self.__target = match.group(2)

    def _on_headers_complete(self) -> None:
        transfer_codings = self._transfer_codings()
        if transfer_codings:
            if transfer_codings[-1] != "chunked":
                raise ParseError(f"Unsupported Transfer-Encoding {transfer_codings!r}")
            self._select(BodyMode.CHUNKED)
            return

        self._select(BodyMode.CONTENT_LENGTH, self._content_length() or 0)
