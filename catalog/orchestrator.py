"""Fan-out/fan-in of paged search requests.

One :meth:`FetchOrchestrator.execute` call is one logical search. It admits
the clauses nobody has asked for yet, sends one request per result page in
parallel, waits for every page to settle, writes the returned records to the
cache and then hands over to the resolver. Clauses that another operation
already has in flight are not requested again; the call waits for that
operation instead.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from .cache import ProductCache
from .clauses import FilterClause, SearchRequest
from .config import settings
from .errors import EmptyResultError, TransportFailure
from .events import CatalogEvents, OperationSummary
from .ledger import DedupLedger
from .models import ProductRecord
from .planner import Page, ResultWindow, plan_pages
from .resolver import QueryResolver, clause_texts
from .transport import SearchTransport

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class PendingBatch:
    """The clauses one operation has in flight and the pages fetching them."""

    clauses: Tuple[FilterClause, ...] = ()
    pages: List[Page] = field(default_factory=list)
    failed_pages: List[Page] = field(default_factory=list)
    product_ids: List[str] = field(default_factory=list)
    settled: asyncio.Event = field(default_factory=asyncio.Event)

    async def wait(self) -> None:
        await self.settled.wait()


class FetchOrchestrator:
    def __init__(
        self,
        transport: SearchTransport,
        ledger: DedupLedger,
        cache: ProductCache,
        events: Optional[CatalogEvents] = None,
        *,
        page_size: int = settings.page_size,
        max_attempts: int = settings.max_attempts,
        max_concurrent_requests: int = settings.max_concurrent_requests,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.transport = transport
        self.ledger = ledger
        self.cache = cache
        self.events = events or CatalogEvents()
        self.resolver = QueryResolver(ledger, cache)
        self.page_size = page_size
        self.max_attempts = max_attempts
        self.max_concurrent_requests = max_concurrent_requests
        self._semaphore: asyncio.Semaphore | None = None

    def _get_semaphore(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent_requests)
        return self._semaphore

    async def execute(self, request: SearchRequest) -> List[ProductRecord]:
        """Run one search and return the records for ``request.clauses``.

        Raises :class:`EmptyResultError` when no clause resolved to a product.
        Pages that fail after every attempt are tolerated.
        """
        started = perf_counter()
        batch = PendingBatch()
        scope = request.scope
        admitted = self.ledger.admit(request.clauses, owner=batch, scope=scope)
        batch.clauses = tuple(admitted)
        others = self.ledger.pending_owners(request.clauses, exclude=batch, scope=scope)
        try:
            batch.pages = plan_pages(admitted, self.page_size)
            if batch.pages:
                outcomes = await asyncio.gather(*(self._fetch_page(request, page) for page in batch.pages))
                for page, records in zip(batch.pages, outcomes):
                    if records is None:
                        batch.failed_pages.append(page)
                        continue
                    batch.product_ids.extend(record.productId for record in self._store(records))
            self.resolver.settle(admitted, _unique(batch.product_ids), scope)
        finally:
            self.ledger.abandon(batch)
            batch.settled.set()

        for other in others:
            await other.wait()

        resolution = self.resolver.resolve(request.clauses, scope)
        elapsed_ms = (perf_counter() - started) * 1000
        summary = OperationSummary(
            clauses=clause_texts(request.clauses),
            admitted=clause_texts(admitted),
            pages=len(batch.pages),
            failed_pages=len(batch.failed_pages),
            records=len(resolution.records),
            empty=tuple(resolution.empty),
            elapsed_ms=elapsed_ms,
        )
        logger.info(
            "search settled: clauses=%s admitted=%s pages=%s failed_pages=%s waited_on=%s records=%s empty=%s took=%.2fms",
            len(summary.clauses),
            len(summary.admitted),
            summary.pages,
            summary.failed_pages,
            len(others),
            summary.records,
            len(summary.empty),
            elapsed_ms,
        )
        self.events.operation_settled(summary)

        if not resolution.records:
            raise EmptyResultError(resolution.empty)
        return resolution.records

    async def fetch_listing(self, request: SearchRequest, window: ResultWindow) -> List[ProductRecord]:
        """Fetch one window of a listing query without consulting the ledger."""
        page = Page(index=0, window=window, clauses=request.clauses)
        records = await self._fetch_page(request, page)
        if not records:
            raise EmptyResultError(clause_texts(request.clauses))
        return self._store(records)

    async def _fetch_page(self, request: SearchRequest, page: Page) -> Optional[List[ProductRecord]]:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                async with self._get_semaphore():
                    payload = await self.transport.perform_search(
                        page.clause_texts, page.window, request.params, request.headers
                    )
                return _parse_records(payload)
            except Exception as exc:  # noqa: BLE001
                # CancelledError is a BaseException and still propagates.
                last_error = exc
                logger.warning(
                    "page %s window=%s attempt %s/%s failed: %s: %s",
                    page.index,
                    page.window.header_value,
                    attempt,
                    self.max_attempts,
                    type(exc).__name__,
                    exc,
                )

        failure = TransportFailure(
            f"Page {page.index} failed after {self.max_attempts} attempt(s): {last_error}",
            window=page.window.header_value,
            attempts=self.max_attempts,
        )
        logger.warning("%s", failure)
        return None

    def _store(self, records: Iterable[ProductRecord]) -> List[ProductRecord]:
        stored_records = []
        for record in records:
            stored = self.cache.store(record)
            stored_records.append(stored)
            self.events.record_stored(stored)
        return stored_records


def _parse_records(payload: Any) -> List[ProductRecord]:
    if not isinstance(payload, list):
        raise TransportFailure(f"Expected a list of products, got {type(payload).__name__}")
    records = []
    for raw in payload:
        try:
            records.append(ProductRecord.model_validate(raw))
        except PydanticValidationError as exc:
            logger.warning("Dropping malformed product record: %s", exc.errors()[:1])
    return records


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
