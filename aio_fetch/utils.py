import abc
import collections.abc
import contextlib
import time
from typing import Any


class Closable(abc.ABC):
    __slots__ = ()

    @abc.abstractmethod
    async def close(self) -> None: ...


async def close_single(item: Closable) -> None:
    with contextlib.suppress(Exception):
        await item.close()


def perf_counter() -> float:
    return time.perf_counter()


def perf_counter_elapsed(started_at: float) -> float:
    return max(0.0, time.perf_counter() - started_at)


def flatten_query_parameters(
    query_parameters: collections.abc.Mapping[str, Any] | collections.abc.Iterable[tuple[str, Any]],
) -> list[tuple[str, str]]:
    parameters: list[tuple[str, str]] = []
    for name, value in (
        query_parameters.items() if isinstance(query_parameters, collections.abc.Mapping) else query_parameters
    ):
        if value is None:
            continue
        if not isinstance(value, str) and isinstance(value, collections.abc.Iterable):
            parameters.extend((name, str(v)) for v in value if v is not None)
        else:
            parameters.append((name, str(value)))
    return parameters


def try_parse_int(value: str | None) -> int | None:
    if value is None or not value.isascii() or not value.isdigit():
        return None
    return int(value)
