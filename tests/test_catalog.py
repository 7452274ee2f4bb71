"""End-to-end behaviour of the catalog facade against a fake endpoint."""

import asyncio

import pytest

from catalog.errors import EmptyResultError, ValidationError
from catalog.ledger import ClauseState
from catalog.service import Catalog, CatalogContext

from conftest import FakeTransport, RecordedCall, make_product


def test_search_product_then_sku_hits_cache(catalog, transport):
    """The sku of a fetched product is answered without another request."""

    record = asyncio.run(catalog.search_product(42))

    assert record.productId == "42"
    assert len(transport.calls) == 1
    assert transport.calls[0].clauses == ["productId:42"]

    same = asyncio.run(catalog.search_sku(7))

    assert same == record
    assert len(transport.calls) == 1


def test_page_requests_carry_window_and_caller_headers(catalog, transport):
    asyncio.run(catalog.search({"fq": ["productId:1"], "sc": "2"}, headers={"x-session": "abc"}))

    call = transport.calls[0]
    assert call.window.header_value == "0-49"
    assert call.headers == {"x-session": "abc"}
    assert call.params == [("sc", "2")]


def test_missing_clause_becomes_resolved_empty(catalog, transport):
    records = asyncio.run(catalog.search({"fq": ["productId:1", "productId:404"]}))

    assert [record.productId for record in records] == ["1"]
    assert catalog.ledger.state("productId:404") is ClauseState.RESOLVED_EMPTY
    assert catalog.ledger.state("productId:1") is ClauseState.RESOLVED_WITH_DATA

    assert asyncio.run(catalog.search_product(404)) is None
    assert len(transport.calls) == 1


def test_empty_search_raises_with_clauses(catalog, transport):
    with pytest.raises(EmptyResultError) as excinfo:
        asyncio.run(catalog.search({"fq": ["productId:404", "skuId:405"]}))

    assert excinfo.value.clauses == ("productId:404", "skuId:405")

    with pytest.raises(EmptyResultError):
        asyncio.run(catalog.search({"fq": ["productId:404"]}))
    assert len(transport.calls) == 1


def test_results_follow_clause_order_and_are_unique(catalog):
    records = asyncio.run(catalog.search({"fq": ["productId:3", "skuId:11", "productId:1", "productId:3"]}))

    assert [record.productId for record in records] == ["3", "1"]


def test_already_resolved_clauses_need_no_network(catalog, transport):
    asyncio.run(catalog.search({"fq": ["productId:1", "productId:2"]}))

    records = asyncio.run(catalog.search({"fq": ["productId:2", "productId:1"]}))

    assert [record.productId for record in records] == ["2", "1"]
    assert len(transport.calls) == 1


def test_product_array_returns_cached_part_when_fetch_fails():
    transport = FakeTransport(products=[make_product(1, 10)])
    catalog = Catalog(transport, max_attempts=3)
    asyncio.run(catalog.search_product(1))
    transport.always_fail = True

    found = asyncio.run(catalog.search_product_array([1, 2, 3]))

    assert list(found) == ["1"]
    assert len(transport.calls) == 1 + 3
    assert transport.calls[-1].clauses == ["productId:2", "productId:3"]


def test_page_retries_then_succeeds():
    transport = FakeTransport(products=[make_product(5, 50)], failures=2)
    catalog = Catalog(transport, max_attempts=3)

    record = asyncio.run(catalog.search_product(5))

    assert record.productId == "5"
    assert len(transport.calls) == 3


def test_product_array_skips_network_when_all_cached(catalog, transport):
    asyncio.run(catalog.search({"fq": ["productId:1", "productId:2"]}))

    found = asyncio.run(catalog.search_product_array(["2", 1]))

    assert set(found) == {"1", "2"}
    assert len(transport.calls) == 1


def test_sku_array_is_keyed_by_product(catalog, transport):
    asyncio.run(catalog.search_sku(11))

    found = asyncio.run(catalog.search_sku_array([11, 12, 21, 999]))

    assert set(found) == {"1", "2"}
    assert transport.calls[-1].clauses == ["skuId:21", "skuId:999"]
    assert catalog.ledger.state("skuId:999") is ClauseState.RESOLVED_EMPTY


def test_concurrent_identical_searches_share_one_request(catalog, transport):
    async def scenario():
        return await asyncio.gather(
            catalog.search({"fq": ["skuId:9"]}),
            catalog.search({"fq": ["skuId:9"]}),
        )

    first, second = asyncio.run(scenario())

    assert len(transport.calls) == 1
    assert first[0].productId == second[0].productId == "90"


def test_overlapping_concurrent_searches_wait_for_each_other(catalog, transport):
    async def scenario():
        return await asyncio.gather(
            catalog.search({"fq": ["productId:1", "productId:2"]}),
            catalog.search({"fq": ["productId:2", "productId:3"]}),
        )

    first, second = asyncio.run(scenario())

    assert [record.productId for record in first] == ["1", "2"]
    assert [record.productId for record in second] == ["2", "3"]
    assert [call.clauses for call in transport.calls] == [
        ["productId:1", "productId:2"],
        ["productId:3"],
    ]


def test_large_batches_are_paged():
    products = [make_product(index, 1000 + index) for index in range(120)]
    transport = FakeTransport(products=products)
    catalog = Catalog(transport, page_size=50)

    records = asyncio.run(catalog.search({"fq": [f"productId:{index}" for index in range(120)]}))

    assert len(records) == 120
    assert [call.window.header_value for call in transport.calls] == ["0-49", "50-99", "100-149"]
    assert catalog.cache.owner_of("1119") == "119"


def test_one_failed_page_does_not_sink_the_batch():
    products = [make_product(index, 1000 + index) for index in range(4)]
    transport = FakeTransport(products=products, failures=1)
    catalog = Catalog(transport, page_size=2, max_attempts=1, max_concurrent_requests=1)

    records = asyncio.run(catalog.search({"fq": [f"productId:{index}" for index in range(4)]}))

    assert [record.productId for record in records] == ["2", "3"]
    assert catalog.ledger.state("productId:0") is ClauseState.RESOLVED_EMPTY


def test_validation_errors_start_nothing(catalog, transport):
    with pytest.raises(ValidationError):
        asyncio.run(catalog.search({"ft": "shoes"}))
    with pytest.raises(ValidationError):
        asyncio.run(catalog.search_product(None))
    with pytest.raises(ValidationError):
        asyncio.run(catalog.search_sku_array("7"))

    assert transport.calls == []
    assert catalog.ledger.counts()["pending"] == 0


def test_category_search_derives_map_and_caches_records():
    transport = FakeTransport(listing=[make_product(500, 5001), make_product(501, 5011)])
    catalog = Catalog(transport)

    records = asyncio.run(catalog.search_category({"fq": ["C:/1000/2000/", "P:[10 TO 100]"], "map": "x"}))

    assert [record.productId for record in records] == ["500", "501"]
    call = transport.calls[0]
    assert call.window.header_value == "0-49"
    assert call.params == [("map", "c,c,priceFrom")]
    assert asyncio.run(catalog.search_sku(5011)).productId == "501"
    assert len(transport.calls) == 1


def test_category_search_with_no_results_raises():
    catalog = Catalog(FakeTransport())

    with pytest.raises(EmptyResultError):
        asyncio.run(catalog.search_category({"fq": ["C:/1/"]}))


def test_observers_see_stored_records_and_settled_operations(catalog):
    stored, settled = [], []
    catalog.events.on_record_stored(lambda record: stored.append(record.productId))

    @catalog.events.on_operation_settled
    def _collect(summary):
        settled.append(summary)

    catalog.events.on_record_stored(lambda record: 1 / 0)

    asyncio.run(catalog.search({"fq": ["productId:1", "productId:404"]}))

    assert stored == ["1"]
    assert settled[0].admitted == ("productId:1", "productId:404")
    assert settled[0].empty == ("productId:404",)
    assert settled[0].pages == 1


def test_shared_context_is_seen_by_every_catalog(transport):
    context = CatalogContext()
    first = Catalog(transport, context)
    second = Catalog(transport, context)

    asyncio.run(first.search_product(2))

    assert asyncio.run(second.search_sku(21)).productId == "2"
    assert len(transport.calls) == 1


class FirstWindowBroken(FakeTransport):
    """Raises a non-transport error for the first result window only."""

    async def perform_search(self, clauses, window, params, headers):
        if window.start == 0:
            self.calls.append(RecordedCall(list(clauses), window, list(params), dict(headers)))
            raise RuntimeError("stream closed")
        return await super().perform_search(clauses, window, params, headers)


def test_unexpected_page_error_is_retried_and_confined_to_its_page():
    products = [make_product(index, 1000 + index) for index in range(4)]
    transport = FirstWindowBroken(products=products)
    catalog = Catalog(transport, page_size=2, max_attempts=3)

    records = asyncio.run(catalog.search({"fq": [f"productId:{index}" for index in range(4)]}))

    assert [record.productId for record in records] == ["2", "3"]
    assert len([call for call in transport.calls if call.window.start == 0]) == 3
    assert catalog.ledger.state("productId:3") is ClauseState.RESOLVED_WITH_DATA
    assert catalog.ledger.state("productId:0") is ClauseState.RESOLVED_EMPTY
    assert catalog.cache.has_product("3")


class FreeTextListing(FakeTransport):
    """Answers listing clauses according to the ``ft`` parameter."""

    async def perform_search(self, clauses, window, params, headers):
        self.calls.append(RecordedCall(list(clauses), window, list(params), dict(headers)))
        await asyncio.sleep(0)
        if dict(params).get("ft") == "shoes":
            return [make_product(500, 5001)]
        return [make_product(600, 6001)]


def test_listing_clause_answers_depend_on_auxiliary_params():
    transport = FreeTextListing()
    catalog = Catalog(transport)

    shoes = asyncio.run(catalog.search({"fq": ["C:/1000/"], "ft": "shoes"}))
    boots = asyncio.run(catalog.search({"fq": ["C:/1000/"], "ft": "boots"}))
    shoes_again = asyncio.run(catalog.search({"fq": ["C:/1000/"], "ft": "shoes"}))

    assert [record.productId for record in shoes] == ["500"]
    assert [record.productId for record in boots] == ["600"]
    assert [record.productId for record in shoes_again] == ["500"]
    assert len(transport.calls) == 2


def test_legacy_price_clause_reaches_the_endpoint_verbatim():
    transport = FakeTransport(listing=[make_product(500, 5001)])
    catalog = Catalog(transport)

    asyncio.run(catalog.search_category({"fq": ["C:/1000/", "P[10 TO 100]"]}))

    call = transport.calls[0]
    assert call.clauses == ["C:/1000/", "P[10 TO 100]"]
    assert call.params == [("map", "c,priceFrom")]
