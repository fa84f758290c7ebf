import abc
import collections.abc
import urllib.parse
from typing import Any


class Body(abc.ABC):
    __slots__ = ()

    @property
    @abc.abstractmethod
    def content_type(self) -> str: ...

    @abc.abstractmethod
    def encode(self) -> bytes: ...


class RawBody(Body):
    __slots__ = ("__data", "__content_type")

    def __init__(self, data: bytes, *, content_type: str = "application/octet-stream") -> None:
        self.__data = bytes(data)
        self.__content_type = content_type

    @property
    def content_type(self) -> str:
        return self.__content_type

    def encode(self) -> bytes:
        return self.__data

    def __repr__(self) -> str:
        return f"<RawBody [{self.__content_type}] length={len(self.__data)}>"


class JsonBody(Body):
    """Already serialized JSON document"""

    __slots__ = ("__data", "__content_type")

    def __init__(self, data: bytes, *, content_type: str = "application/json") -> None:
        self.__data = data
        self.__content_type = content_type

    @property
    def content_type(self) -> str:
        return self.__content_type

    def encode(self) -> bytes:
        return self.__data

    def __repr__(self) -> str:
        return f"<JsonBody [{self.__content_type}] length={len(self.__data)}>"


class FormBody(Body):
    __slots__ = ("__pairs",)

    def __init__(self, pairs: collections.abc.Mapping[str, Any] | collections.abc.Iterable[tuple[str, Any]]) -> None:
        items = pairs.items() if isinstance(pairs, collections.abc.Mapping) else pairs
        self.__pairs = tuple((str(name), str(value)) for name, value in items)

    @property
    def content_type(self) -> str:
        return "application/x-www-form-urlencoded"

    @property
    def pairs(self) -> tuple[tuple[str, str], ...]:
        return self.__pairs

    def encode(self) -> bytes:
        return urllib.parse.urlencode(self.__pairs).encode("ascii")

    def __repr__(self) -> str:
        return f"<FormBody {self.__pairs!r}>"
