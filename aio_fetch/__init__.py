import re
import sys
from typing import NamedTuple

from .base import (
    BuildError,
    ClientError,
    ConnectError,
    ConnectionClosedError,
    Header,
    InvalidHeaderError,
    InvalidUrlError,
    Method,
    ParseError,
    Request,
    ResolutionError,
    Response,
    SerializationError,
    TransportError,
    UnexpectedContentTypeError,
    WriteError,
)
from .body import Body, FormBody, JsonBody, RawBody
from .codec import BodyMode, ParserState, ReceivedRequest, RequestParser, ResponseParser, serialize_request
from .connection import AsyncioConnector, Connection, Connector, StreamConnection
from .request import RequestBuilder, delete, get, head, options, patch, post, put, request
from .resolver import Address, AsyncioResolver, CachingResolver, Resolver
from .transport import HttpTransport, SendStage, Transport

__all__: tuple[str, ...] = (
    "Address",
    "AsyncioConnector",
    "AsyncioResolver",
    "Body",
    "BodyMode",
    "BuildError",
    "CachingResolver",
    "ClientError",
    "ConnectError",
    "Connection",
    "ConnectionClosedError",
    "Connector",
    "FormBody",
    "Header",
    "HttpTransport",
    "InvalidHeaderError",
    "InvalidUrlError",
    "JsonBody",
    "Method",
    "ParseError",
    "ParserState",
    "RawBody",
    "ReceivedRequest",
    "Request",
    "RequestBuilder",
    "RequestParser",
    "ResolutionError",
    "Resolver",
    "Response",
    "ResponseParser",
    "SendStage",
    "SerializationError",
    "StreamConnection",
    "Transport",
    "TransportError",
    "UnexpectedContentTypeError",
    "WriteError",
    "delete",
    "get",
    "head",
    "options",
    "patch",
    "post",
    "put",
    "request",
    "serialize_request",
)
try:
    import aiohttp  # noqa

    from .aiohttp import AioHttpResolver

    __all__ += ("AioHttpResolver",)  # type: ignore
except ImportError:
    pass

__version__ = "0.1.0"

version = f"{__version__}, Python {sys.version}"


class VersionInfo(NamedTuple):
    major: int
    minor: int
    micro: int
    release_level: str
    serial: int


def _parse_version(v: str) -> VersionInfo:
    version_re = r"^(?P<major>\d+)\.(?P<minor>\d+)\.(?P<micro>\d+)((?P<release_level>[a-z]+)(?P<serial>\d+)?)?$"
    match = re.match(version_re, v)
    if not match:
        raise ImportError(f"Invalid package version {v}")
    try:
        major = int(match.group("major"))
        minor = int(match.group("minor"))
        micro = int(match.group("micro"))
        levels = {"rc": "candidate", "a": "alpha", "b": "beta", None: "final"}
        release_level = levels[match.group("release_level")]
        serial = int(match.group("serial")) if match.group("serial") else 0
        return VersionInfo(major, minor, micro, release_level, serial)
    except Exception as e:
        raise ImportError(f"Invalid package version {v}") from e


version_info = _parse_version(__version__)
