"""Shared fixtures: an in-memory search endpoint standing in for the network."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import pytest

from catalog.errors import TransportFailure
from catalog.planner import ResultWindow
from catalog.service import Catalog


@dataclass
class RecordedCall:
    clauses: List[str]
    window: ResultWindow
    params: List[Tuple[str, str]]
    headers: Dict[str, str]


@dataclass
class FakeTransport:
    """Answers ``productId``/``skuId`` clauses from ``products``.

    ``failures`` makes the first N calls raise; ``always_fail`` makes every
    call raise. ``listing`` is returned for clauses that are not id lookups.
    """

    products: List[Dict[str, Any]] = field(default_factory=list)
    listing: List[Dict[str, Any]] = field(default_factory=list)
    failures: int = 0
    always_fail: bool = False
    calls: List[RecordedCall] = field(default_factory=list)

    async def perform_search(
        self,
        clauses: Sequence[str],
        window: ResultWindow,
        params: Sequence[Tuple[str, str]],
        headers: Mapping[str, str],
    ) -> List[Dict[str, Any]]:
        self.calls.append(RecordedCall(list(clauses), window, list(params), dict(headers)))
        await asyncio.sleep(0)
        if self.always_fail or self.failures > 0:
            self.failures -= 1
            raise TransportFailure("connection refused", window=window.header_value)
        matches = [product for product in self.products if self._matches(product, clauses)]
        if any(not clause.startswith(("productId:", "skuId:")) for clause in clauses):
            matches.extend(self.listing)
        return matches[window.start : window.end + 1]

    @staticmethod
    def _matches(product: Dict[str, Any], clauses: Sequence[str]) -> bool:
        for clause in clauses:
            field_name, _, value = clause.partition(":")
            if field_name == "productId" and str(product["productId"]) == value:
                return True
            if field_name == "skuId" and any(str(item["itemId"]) == value for item in product["items"]):
                return True
        return False


def make_product(product_id: int, *sku_ids: int, **extra: Any) -> Dict[str, Any]:
    return {
        "productId": str(product_id),
        "productName": extra.pop("productName", f"Product {product_id}"),
        "items": [{"itemId": str(sku_id), "name": f"Sku {sku_id}"} for sku_id in sku_ids],
        **extra,
    }


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport(
        products=[
            make_product(1, 11, 12),
            make_product(2, 21),
            make_product(3, 31),
            make_product(42, 7),
            make_product(90, 9),
        ]
    )


@pytest.fixture
def catalog(transport: FakeTransport) -> Catalog:
    return Catalog(transport, page_size=50, max_attempts=3, max_concurrent_requests=4)
