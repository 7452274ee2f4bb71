"""HTTP transport encoding and failure mapping."""

import asyncio

import httpx
import pytest

from catalog.errors import TransportFailure
from catalog.planner import ResultWindow
from catalog.transport import HttpSearchTransport


def _transport(handler):
    client = httpx.AsyncClient(base_url="http://store.test", transport=httpx.MockTransport(handler))
    return HttpSearchTransport(search_path="/api/catalog_system/pub/products/search/", client=client)


def test_request_encodes_clauses_window_and_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = request.url.params.multi_items()
        seen["resources"] = request.headers.get("resources")
        seen["session"] = request.headers.get("x-session")
        return httpx.Response(206, json=[{"productId": "1", "items": []}])

    transport = _transport(handler)
    payload = asyncio.run(
        transport.perform_search(
            ["productId:1", "skuId:2"], ResultWindow(50, 99), [("sc", "1")], {"x-session": "abc"}
        )
    )

    assert payload == [{"productId": "1", "items": []}]
    assert seen["path"] == "/api/catalog_system/pub/products/search/"
    assert seen["params"] == [
        ("fq", "productId:1"),
        ("fq", "skuId:2"),
        ("sc", "1"),
        ("_from", "50"),
        ("_to", "99"),
    ]
    assert seen["resources"] == "50-99"
    assert seen["session"] == "abc"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(200, json={"not": "a list"}),
        httpx.Response(200, content=b"<html>"),
    ],
)
def test_bad_responses_become_transport_failures(response):
    transport = _transport(lambda request: response)

    with pytest.raises(TransportFailure) as excinfo:
        asyncio.run(transport.perform_search(["productId:1"], ResultWindow(0, 49), [], {}))

    assert excinfo.value.window == "0-49"


def test_connection_errors_become_transport_failures():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    transport = _transport(handler)

    with pytest.raises(TransportFailure):
        asyncio.run(transport.perform_search(["productId:1"], ResultWindow(0, 49), [], {}))
