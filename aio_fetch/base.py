import collections.abc
import json
import re
from typing import Any

import multidict
import yarl

EMPTY_HEADERS = multidict.CIMultiDictProxy[str](multidict.CIMultiDict[str]())
SUPPORTED_SCHEMES = frozenset(("http", "https"))


class Method:
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    PATCH = "PATCH"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    CONNECT = "CONNECT"


class Header:
    CONNECTION = multidict.istr("Connection")
    CONTENT_TYPE = multidict.istr("Content-Type")
    CONTENT_LENGTH = multidict.istr("Content-Length")
    HOST = multidict.istr("Host")
    TRANSFER_ENCODING = multidict.istr("Transfer-Encoding")


_MultiDict = (
    collections.abc.Mapping[str | multidict.istr, str] | multidict.CIMultiDictProxy[str] | multidict.CIMultiDict[str]
)

json_re = re.compile(r"^application/(?:[\w.+-]+?\+)?json", re.RegexFlag.IGNORECASE)
charset_re = re.compile(r";\s*charset=\"?([\w.:-]+)\"?", re.RegexFlag.IGNORECASE)
token_re = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
header_value_re = re.compile(r"[\t\x20-\x7e]*")

QueryParameters = collections.abc.Mapping[str, Any] | collections.abc.Iterable[tuple[str, Any]] | _MultiDict
Headers = _MultiDict | collections.abc.Iterable[tuple[str, str]]


def is_expected_content_type(response_content_type: str, expected_content_type: str) -> bool:
    if expected_content_type == "application/json":
        return bool(json_re.match(response_content_type))
    return expected_content_type in response_content_type


class ClientError(Exception):
    """Base class of every error raised by aio_fetch"""


class BuildError(ClientError):
    """Request cannot be built, detected before any I/O"""


class InvalidUrlError(BuildError):
    """Url is not absolute, has no host or its scheme is not http/https"""


class InvalidHeaderError(BuildError):
    """Header name or value contains forbidden characters"""


class SerializationError(BuildError):
    """Request body cannot be serialized"""


class TransportError(ClientError):
    """Exchange has failed on the network"""


class ResolutionError(TransportError):
    """Host cannot be resolved to an address"""


class ConnectError(TransportError):
    """Connection cannot be established"""


class WriteError(TransportError):
    """Request cannot be written to the connection"""


class ConnectionClosedError(TransportError):
    """Connection is closed before the response is complete"""


class ParseError(ClientError):
    """Malformed HTTP data is received"""


class UnexpectedContentTypeError(ClientError):
    """ContentType is unexpected"""


class Request:
    __slots__ = (
        "method",
        "url",
        "query_parameters",
        "headers",
        "body",
    )

    def __init__(
        self,
        *,
        method: str,
        url: yarl.URL,
        query_parameters: collections.abc.Sequence[tuple[str, str]] = (),
        headers: Headers | None = None,
        body: bytes | None = None,
    ):
        if not token_re.fullmatch(method):
            raise BuildError(f"Invalid method {method!r}")
        if not url.is_absolute() or url.scheme not in SUPPORTED_SCHEMES:
            raise InvalidUrlError(f"Request url should be absolute with http or https scheme, actual {url}")
        if not url.raw_host:
            raise InvalidUrlError(f"Request url should have a host, actual {url}")

        checked_headers = multidict.CIMultiDict[str]()
        for name, value in (headers.items() if isinstance(headers, collections.abc.Mapping) else headers or ()):
            if not isinstance(name, str) or not token_re.fullmatch(name):
                raise InvalidHeaderError(f"Invalid header name {name!r}")
            if not isinstance(value, str) or not header_value_re.fullmatch(value):
                raise InvalidHeaderError(f"Invalid value of header {name}: {value!r}")
            checked_headers.add(name, value)

        self.method = method
        self.url = url
        self.query_parameters = tuple(query_parameters)
        self.headers = multidict.CIMultiDictProxy[str](checked_headers)
        self.body = body

    def __repr__(self) -> str:
        body_length = -1 if self.body is None else len(self.body)
        return f"<Request [{self.method} {self.url}] body_length={body_length}>"


class Response:
    __slots__ = ("__status", "__reason", "__headers", "__body")

    def __init__(
        self,
        *,
        status: int,
        reason: str = "",
        headers: multidict.CIMultiDictProxy[str] = EMPTY_HEADERS,
        body: bytes = b"",
    ) -> None:
        if not 100 <= status <= 599:
            raise ValueError(f"Status should be in range 100..599, actual {status}")

        self.__status = status
        self.__reason = reason
        self.__headers = headers
        self.__body = body

    @property
    def status(self) -> int:
        return self.__status

    @property
    def reason(self) -> str:
        return self.__reason

    @property
    def headers(self) -> multidict.CIMultiDictProxy[str]:
        return self.__headers

    @property
    def body(self) -> bytes:
        return self.__body

    @property
    def content_type(self) -> str | None:
        return self.__headers.get(Header.CONTENT_TYPE)

    @property
    def charset(self) -> str | None:
        match = charset_re.search(self.content_type or "")
        return match.group(1) if match is not None else None

    @property
    def is_json(self) -> bool:
        return bool(json_re.match(self.content_type or ""))

    def text(self, encoding: str | None = None) -> str:
        return self.__body.decode(encoding or self.charset or "utf-8")

    def json(
        self,
        *,
        encoding: str | None = None,
        loads: collections.abc.Callable[[str], Any] = json.loads,
        content_type: str | None = None,
    ) -> Any:
        if content_type is not None:
            response_content_type = (self.content_type or "").lower()
            if not is_expected_content_type(response_content_type, content_type):
                raise UnexpectedContentTypeError(f"Expected {content_type}, actual {response_content_type}")

        return loads(self.text(encoding))

    def is_informational(self) -> bool:
        return 100 <= self.status < 200

    def is_successful(self) -> bool:
        return 200 <= self.status < 300

    def is_redirection(self) -> bool:
        return 300 <= self.status < 400

    def is_client_error(self) -> bool:
        return 400 <= self.status < 500

    def is_server_error(self) -> bool:
        return 500 <= self.status < 600

    def __repr__(self) -> str:
        return f"<Response [{self.status}]>"
