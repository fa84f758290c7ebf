import collections.abc
import json
from typing import Any

import multidict
import yarl

from .base import (
    BuildError,
    Header,
    Headers,
    InvalidHeaderError,
    InvalidUrlError,
    Method,
    QueryParameters,
    Request,
    Response,
    SerializationError,
)
from .body import Body, FormBody, JsonBody, RawBody
from .transport import HttpTransport, Transport
from .utils import flatten_query_parameters

_SINGLE_VALUED_HEADERS = frozenset((Header.CONTENT_TYPE.lower(), Header.CONTENT_LENGTH.lower()))


class RequestBuilder:
    """Accumulates a request and turns it into an immutable `Request` exactly once.

    Configuration calls never raise on bad input: errors are recorded and surfaced
    by `build()` or `send()`, before any network activity.
    """

    __slots__ = (
        "__body",
        "__consumed",
        "__errors",
        "__headers",
        "__method",
        "__query_parameters",
        "__url",
    )

    def __init__(self, method: str, url: str | yarl.URL) -> None:
        self.__method = method
        self.__headers = multidict.CIMultiDict[str]()
        self.__query_parameters: list[tuple[str, str]] = []
        self.__body: Body | None = None
        self.__errors: list[BuildError] = []
        self.__consumed = False
        self.__url: yarl.URL | None = None
        try:
            self.__url = url if isinstance(url, yarl.URL) else yarl.URL(url)
        except (TypeError, ValueError) as e:
            self.__record(InvalidUrlError(f"Invalid url {url!r}"), e)

    @property
    def method(self) -> str:
        return self.__method

    @property
    def url(self) -> yarl.URL | None:
        return self.__url

    @property
    def consumed(self) -> bool:
        return self.__consumed

    def header(self, name: str, value: str) -> "RequestBuilder":
        self.__ensure_not_consumed()
        if not isinstance(name, str):
            self.__errors.append(InvalidHeaderError(f"Invalid header name {name!r}"))
        elif name.lower() in _SINGLE_VALUED_HEADERS:
            self.__headers[name] = value
        else:
            self.__headers.add(name, value)
        return self

    def remove_header(self, name: str) -> "RequestBuilder":
        self.__ensure_not_consumed()
        self.__headers.popall(name, None)
        return self

    def headers(self, headers: Headers) -> "RequestBuilder":
        for name, value in headers.items() if isinstance(headers, collections.abc.Mapping) else headers:
            self.header(name, value)
        return self

    def param(self, name: str, value: Any) -> "RequestBuilder":
        self.__ensure_not_consumed()
        self.__query_parameters.append((name, str(value)))
        return self

    def params(self, query_parameters: QueryParameters) -> "RequestBuilder":
        self.__ensure_not_consumed()
        self.__query_parameters.extend(flatten_query_parameters(query_parameters))
        return self

    def body(self, data: bytes, *, content_type: str = "application/octet-stream") -> "RequestBuilder":
        return self.__set_body(RawBody(data, content_type=content_type))

    def form(
        self, pairs: collections.abc.Mapping[str, Any] | collections.abc.Iterable[tuple[str, Any]]
    ) -> "RequestBuilder":
        return self.__set_body(FormBody(pairs))

    def json(
        self,
        data: Any,
        *,
        dumps: collections.abc.Callable[[Any], str] = json.dumps,
        encoding: str = "utf-8",
        content_type: str = "application/json",
    ) -> "RequestBuilder":
        self.__ensure_not_consumed()
        try:
            serialized = dumps(data).encode(encoding)
        except (TypeError, ValueError) as e:
            self.__record(SerializationError(f"Cannot serialize {type(data).__name__} to JSON: {e}"), e)
            return self
        return self.__set_body(JsonBody(serialized, content_type=content_type))

    def build(self) -> Request:
        self.__ensure_not_consumed()
        self.__consumed = True

        if self.__errors:
            raise self.__errors[0]
        if self.__url is None:
            raise RuntimeError("Request builder has no url")

        headers = multidict.CIMultiDict[str](self.__headers)
        headers.popall(Header.CONTENT_LENGTH, None)
        headers.popall(Header.TRANSFER_ENCODING, None)
        body = None
        if self.__body is not None:
            body = self.__body.encode()
            headers[Header.CONTENT_LENGTH] = str(len(body))

        return Request(
            method=self.__method,
            url=self.__url,
            query_parameters=self.__query_parameters,
            headers=headers,
            body=body,
        )

    def send(self, transport: Transport | None = None) -> collections.abc.Awaitable[Response]:
        request = self.build()
        return (transport or HttpTransport()).send(request)

    def __set_body(self, body: Body) -> "RequestBuilder":
        self.__ensure_not_consumed()
        self.__body = body
        self.__headers[Header.CONTENT_TYPE] = body.content_type
        return self

    def __record(self, error: BuildError, cause: BaseException) -> None:
        error.__cause__ = cause
        self.__errors.append(error)

    def __ensure_not_consumed(self) -> None:
        if self.__consumed:
            raise RuntimeError("Request builder has already been consumed")

    def __repr__(self) -> str:
        return f"<RequestBuilder [{self.__method} {self.__url}]>"


def request(method: str, url: str | yarl.URL) -> RequestBuilder:
    return RequestBuilder(method, url)


def get(url: str | yarl.URL) -> RequestBuilder:
    return request(Method.GET, url)


def head(url: str | yarl.URL) -> RequestBuilder:
    return request(Method.HEAD, url)


def options(url: str | yarl.URL) -> RequestBuilder:
    return request(Method.OPTIONS, url)


def post(url: str | yarl.URL) -> RequestBuilder:
    return request(Method.POST, url)


def put(url: str | yarl.URL) -> RequestBuilder:
    return request(Method.PUT, url)


def patch(url: str | yarl.URL) -> RequestBuilder:
    return request(Method.PATCH, url)


def delete(url: str | yarl.URL) -> RequestBuilder:
    return request(Method.DELETE, url)
