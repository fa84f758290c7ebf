import datetime
import unittest.mock
from collections.abc import Callable

import pytest
import yarl

import aio_fetch

from .conftest import FakeConnection, FakeConnector


async def test_build_get() -> None:
    request = aio_fetch.get("https://service.com/items").header("Accept", "application/json").build()

    assert request.method == "GET"
    assert request.url == yarl.URL("https://service.com/items")
    assert request.headers == {"Accept": "application/json"}
    assert request.body is None


@pytest.mark.parametrize(
    "factory, method",
    [
        (aio_fetch.get, "GET"),
        (aio_fetch.head, "HEAD"),
        (aio_fetch.options, "OPTIONS"),
        (aio_fetch.post, "POST"),
        (aio_fetch.put, "PUT"),
        (aio_fetch.patch, "PATCH"),
        (aio_fetch.delete, "DELETE"),
    ],
)
async def test_method_shortcuts(factory: Callable[[str], aio_fetch.RequestBuilder], method: str) -> None:
    assert factory("http://service.com").build().method == method


async def test_custom_method() -> None:
    assert aio_fetch.request("PROPFIND", "http://service.com").build().method == "PROPFIND"


async def test_repeated_headers_are_kept_in_order() -> None:
    request = aio_fetch.get("http://service.com").header("X-Test", "a").header("x-test", "b").build()

    assert request.headers.getall("X-Test") == ["a", "b"]


async def test_content_type_is_single_valued() -> None:
    request = (
        aio_fetch.post("http://service.com")
        .header("Content-Type", "text/plain")
        .header("content-type", "text/csv")
        .body(b"a,b")
        .build()
    )

    assert request.headers.getall("Content-Type") == ["application/octet-stream"]


async def test_explicit_content_type_after_body_wins() -> None:
    request = aio_fetch.post("http://service.com").json([1]).header("Content-Type", "application/vnd.api+json").build()

    assert request.headers.getall("Content-Type") == ["application/vnd.api+json"]


async def test_content_length_is_derived_from_body() -> None:
    request = aio_fetch.post("http://service.com").header("Content-Length", "100").body(b"12345").build()

    assert request.headers.getall("Content-Length") == ["5"]


async def test_content_length_is_dropped_without_body() -> None:
    request = aio_fetch.get("http://service.com").header("Content-Length", "100").build()

    assert "Content-Length" not in request.headers


async def test_headers_from_mapping_and_pairs() -> None:
    request = (
        aio_fetch.get("http://service.com")
        .headers({"X-A": "1"})
        .headers([("X-B", "2"), ("X-A", "3")])
        .build()
    )

    assert list(request.headers.items()) == [("X-A", "1"), ("X-B", "2"), ("X-A", "3")]


async def test_params() -> None:
    request = (
        aio_fetch.get("http://service.com/items?sort=asc")
        .param("page", 2)
        .params({"tag": ["a", "b"], "missing": None})
        .param("page", "3")
        .build()
    )

    assert request.url == yarl.URL("http://service.com/items?sort=asc")
    assert request.query_parameters == (("page", "2"), ("tag", "a"), ("tag", "b"), ("page", "3"))


async def test_json_body() -> None:
    request = aio_fetch.post("http://service.com").json({"name": "é", "tags": [1, None]}).build()

    assert request.body == '{"name": "\\u00e9", "tags": [1, null]}'.encode()
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["Content-Length"] == str(len(request.body))


async def test_json_body_with_custom_dumps() -> None:
    dumps = unittest.mock.Mock(return_value='"custom"')
    request = (
        aio_fetch.put("http://service.com")
        .json(object(), dumps=dumps, content_type="application/merge-patch+json")
        .build()
    )

    assert request.body == b'"custom"'
    assert request.headers["Content-Type"] == "application/merge-patch+json"


async def test_form_body() -> None:
    request = aio_fetch.post("http://service.com").form([("a", "1 2"), ("b", "x&y"), ("a", 3)]).build()

    assert request.body == b"a=1+2&b=x%26y&a=3"
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"


async def test_last_body_wins() -> None:
    request = aio_fetch.post("http://service.com").json({"a": 1}).body(b"raw", content_type="text/plain").build()

    assert request.body == b"raw"
    assert request.headers.getall("Content-Type") == ["text/plain"]


async def test_empty_body_is_sent_with_zero_length() -> None:
    request = aio_fetch.post("http://service.com").body(b"").build()

    assert request.body == b""
    assert request.headers["Content-Length"] == "0"


async def test_serialization_error() -> None:
    builder = aio_fetch.post("http://service.com").json({"at": datetime.datetime.now()})

    with pytest.raises(aio_fetch.SerializationError) as e:
        builder.build()
    assert isinstance(e.value.__cause__, TypeError)


async def test_serialization_error_before_any_network_activity() -> None:
    connection = FakeConnection(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n")
    connector = FakeConnector(connection)
    builder = aio_fetch.post("http://service.com").json({1, 2})

    with pytest.raises(aio_fetch.SerializationError):
        await builder.send(aio_fetch.HttpTransport(connector))

    assert connector.resolve_calls == []
    assert connector.connect_calls == []
    assert connection.written == b""


async def test_first_error_is_raised() -> None:
    builder = aio_fetch.post("http://[::1").json({1}).header("X-Test", "1")

    with pytest.raises(aio_fetch.InvalidUrlError):
        builder.build()


async def test_invalid_header_is_raised_on_build() -> None:
    builder = aio_fetch.get("http://service.com").header("X-Test", "a\r\nX-Injected: b")

    with pytest.raises(aio_fetch.InvalidHeaderError):
        builder.build()


@pytest.mark.parametrize("url", ["/items", "ftp://service.com", "http://[::1"])
async def test_invalid_url(url: str) -> None:
    with pytest.raises(aio_fetch.InvalidUrlError):
        aio_fetch.get(url).build()


async def test_builder_is_consumed_by_build() -> None:
    builder = aio_fetch.get("http://service.com")
    builder.build()

    assert builder.consumed
    with pytest.raises(RuntimeError):
        builder.build()
    with pytest.raises(RuntimeError):
        builder.header("X-Test", "1")
    with pytest.raises(RuntimeError):
        builder.json({})


async def test_builder_is_consumed_by_failed_build() -> None:
    builder = aio_fetch.post("http://service.com").json({1})

    with pytest.raises(aio_fetch.SerializationError):
        builder.build()
    with pytest.raises(RuntimeError):
        builder.build()


async def test_send() -> None:
    connection = FakeConnection(b"HTTP/1.1 200 OK\r\nContent-Type: application/json\r\nContent-Length: 2\r\n\r\n{}")
    connector = FakeConnector(connection)
    builder = aio_fetch.delete("http://service.com/items/1")

    response = await builder.send(aio_fetch.HttpTransport(connector))

    assert builder.consumed
    assert response.status == 200
    assert response.json() == {}
    assert bytes(connection.written).startswith(b"DELETE /items/1 HTTP/1.1\r\n")


async def test_transfer_encoding_is_dropped() -> None:
    request = (
        aio_fetch.post("http://service.com")
        .header("Transfer-Encoding", "chunked")
        .header("transfer-encoding", "gzip")
        .body(b"abc")
        .build()
    )

    assert "Transfer-Encoding" not in request.headers
    assert request.headers["Content-Length"] == "3"


async def test_invalid_header_name_is_raised_on_build() -> None:
    builder = aio_fetch.get("http://service.com").header(None, "value")  # type: ignore[arg-type]

    with pytest.raises(aio_fetch.InvalidHeaderError):
        builder.build()


async def test_remove_header() -> None:
    request = (
        aio_fetch.get("http://service.com")
        .header("X-Test", "a")
        .header("X-Other", "b")
        .header("x-test", "c")
        .remove_header("X-TEST")
        .remove_header("X-Missing")
        .build()
    )

    assert list(request.headers.items()) == [("X-Other", "b")]


async def test_remove_header_on_consumed_builder() -> None:
    builder = aio_fetch.get("http://service.com")
    builder.build()

    with pytest.raises(RuntimeError):
        builder.remove_header("X-Test")
