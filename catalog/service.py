"""Public entry points for catalog lookups.

:class:`Catalog` is what the rest of the storefront talks to. It validates the
caller's input, answers from the product cache when it can and otherwise
delegates to the :class:`~catalog.orchestrator.FetchOrchestrator`.

The ledger, cache and observers live in a :class:`CatalogContext`. The
application builds one at start-up through :func:`get_catalog` and keeps it
for the lifetime of the process; there is no teardown or expiry.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .cache import ProductCache
from .clauses import (
    SearchRequest,
    build_search_request,
    derive_map,
    normalize_id,
    normalize_id_array,
    product_clause,
    sku_clause,
)
from .config import settings
from .errors import EmptyResultError
from .events import CatalogEvents
from .ledger import DedupLedger
from .models import ProductRecord
from .orchestrator import FetchOrchestrator
from .planner import ResultWindow
from .transport import SearchTransport, get_transport

logger = logging.getLogger(__name__)


@dataclass
class CatalogContext:
    ledger: DedupLedger = field(default_factory=DedupLedger)
    cache: ProductCache = field(default_factory=ProductCache)
    events: CatalogEvents = field(default_factory=CatalogEvents)


class Catalog:
    def __init__(
        self,
        transport: SearchTransport,
        context: Optional[CatalogContext] = None,
        *,
        page_size: int = settings.page_size,
        max_attempts: int = settings.max_attempts,
        max_concurrent_requests: int = settings.max_concurrent_requests,
        category_window: str = settings.category_window,
    ) -> None:
        self.context = context or CatalogContext()
        self.orchestrator = FetchOrchestrator(
            transport,
            self.context.ledger,
            self.context.cache,
            self.context.events,
            page_size=page_size,
            max_attempts=max_attempts,
            max_concurrent_requests=max_concurrent_requests,
        )
        self.category_window = ResultWindow.parse(category_window)

    @property
    def cache(self) -> ProductCache:
        return self.context.cache

    @property
    def ledger(self) -> DedupLedger:
        return self.context.ledger

    @property
    def events(self) -> CatalogEvents:
        return self.context.events

    async def search(self, query: Any, headers: Optional[Mapping[str, Any]] = None) -> List[ProductRecord]:
        """Search by ``fq`` clauses, e.g. ``{"fq": ["productId:1", "skuId:7"]}``.

        Returns the matching records in clause order. Raises
        :class:`~catalog.errors.EmptyResultError` when nothing matched.
        """
        request = build_search_request(query, headers)
        return await self.orchestrator.execute(request)

    async def search_product(self, product_id: Any) -> Optional[ProductRecord]:
        product_id = normalize_id(product_id, code="productIdNotDefined", field_name="productId")
        cached = self.cache.lookup_by_product(product_id)
        if cached is not None:
            return cached
        return await self._search_single(SearchRequest((product_clause(product_id),)))

    async def search_sku(self, sku_id: Any) -> Optional[ProductRecord]:
        sku_id = normalize_id(sku_id, code="skuIdNotDefined", field_name="skuId")
        cached = self.cache.lookup_by_sku(sku_id)
        if cached is not None:
            return cached
        return await self._search_single(SearchRequest((sku_clause(sku_id),)))

    async def _search_single(self, request: SearchRequest) -> Optional[ProductRecord]:
        try:
            records = await self.orchestrator.execute(request)
        except EmptyResultError:
            logger.debug("not found: %s", request.clause_texts)
            return None
        return records[0]

    async def search_product_array(self, product_ids: Any) -> Dict[str, ProductRecord]:
        """Map each found product id to its record.

        Cached ids are answered directly; if fetching the rest yields nothing
        the cached part is still returned.
        """
        ids = normalize_id_array(
            product_ids,
            missing_code="productIdArrayNotDefined",
            not_array_code="productIdArrayNotAnArray",
            field_name="productIdArray",
            item_code="productIdNotDefined",
        )
        found: Dict[str, ProductRecord] = {}
        missing: List[str] = []
        for product_id in ids:
            record = self.cache.lookup_by_product(product_id)
            if record is not None:
                found[product_id] = record
            elif product_id not in missing:
                missing.append(product_id)
        for record in await self._fetch_missing(missing, product_clause):
            found[record.productId] = record
        return found

    async def search_sku_array(self, sku_ids: Any) -> Dict[str, ProductRecord]:
        """Like :meth:`search_product_array` for skus; keys are owning product ids."""
        ids = normalize_id_array(
            sku_ids,
            missing_code="skuIdArrayNotDefined",
            not_array_code="skuIdArrayNotAnArray",
            field_name="skuIdArray",
            item_code="skuIdNotDefined",
        )
        found: Dict[str, ProductRecord] = {}
        missing: List[str] = []
        for sku_id in ids:
            record = self.cache.lookup_by_sku(sku_id)
            if record is not None:
                found[record.productId] = record
            elif sku_id not in missing:
                missing.append(sku_id)
        for record in await self._fetch_missing(missing, sku_clause):
            found[record.productId] = record
        return found

    async def _fetch_missing(self, ids: Iterable[str], make_clause) -> List[ProductRecord]:
        clauses = tuple(make_clause(value) for value in ids)
        if not clauses:
            return []
        try:
            return await self.orchestrator.execute(SearchRequest(clauses))
        except EmptyResultError as exc:
            logger.info("array lookup returned cached part only; empty=%s", list(exc.clauses))
            return []

    async def search_category(self, query: Any, headers: Optional[Mapping[str, Any]] = None) -> List[ProductRecord]:
        """Fetch the first window of a category/price listing.

        The ``map`` parameter is derived from the clauses when they carry
        category or price hints.
        """
        request = build_search_request(query, headers)
        map_value = derive_map(request.clauses)
        if map_value:
            params = tuple(param for param in request.params if param[0] != "map") + (("map", map_value),)
            request = SearchRequest(request.clauses, params, request.headers)
        logger.debug("category search clauses=%s map=%r", request.clause_texts, map_value)
        return await self.orchestrator.fetch_listing(request, self.category_window)


@lru_cache(maxsize=1)
def get_catalog() -> Catalog:
    return Catalog(get_transport())
