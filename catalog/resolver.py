"""Turn the caller's clause list into an answer read from the product cache."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple

from .cache import ProductCache
from .clauses import ClauseKind, FilterClause
from .ledger import DedupLedger
from .models import ProductRecord

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    records: List[ProductRecord] = field(default_factory=list)
    empty: List[str] = field(default_factory=list)


class QueryResolver:
    def __init__(self, ledger: DedupLedger, cache: ProductCache) -> None:
        self.ledger = ledger
        self.cache = cache

    def lookup(self, clause: FilterClause) -> Optional[ProductRecord]:
        kind = clause.kind
        if kind is ClauseKind.PRODUCT_ID:
            return self.cache.lookup_by_product(clause.value)
        if kind is ClauseKind.SKU_ID:
            return self.cache.lookup_by_sku(clause.value)
        return None

    def settle(self, admitted: Sequence[FilterClause], fetched_ids: Sequence[str], scope: str = "") -> None:
        """Move every admitted clause out of the pending state.

        Id clauses are checked against the cache. Other clauses cannot be
        matched to a single record, so they are credited with whatever the
        batch fetched.
        """
        for clause in admitted:
            if clause.is_identity:
                record = self.lookup(clause)
                if record is not None:
                    self.ledger.mark_with_data(clause, [record.productId], scope)
                else:
                    self.ledger.mark_empty(clause, scope)
            elif fetched_ids:
                self.ledger.mark_with_data(clause, fetched_ids, scope)
            else:
                self.ledger.mark_empty(clause, scope)

    def _records_for(self, clause: FilterClause, scope: str) -> List[ProductRecord]:
        if clause.is_identity:
            record = self.lookup(clause)
            return [record] if record is not None else []
        records = []
        for product_id in self.ledger.product_ids(clause, scope):
            record = self.cache.lookup_by_product(product_id)
            if record is not None:
                records.append(record)
        return records

    def resolve(self, clauses: Sequence[FilterClause], scope: str = "") -> Resolution:
        """Answer ``clauses`` in caller order, one entry per distinct product."""
        resolution = Resolution()
        seen: Set[str] = set()
        handled: Set[str] = set()
        for clause in clauses:
            key = str(clause)
            if key in handled:
                continue
            handled.add(key)
            records = self._records_for(clause, scope)
            if not records:
                self.ledger.mark_empty(clause, scope)
                resolution.empty.append(key)
                continue
            self.ledger.mark_with_data(clause, [record.productId for record in records], scope)
            for record in records:
                if record.productId in seen:
                    continue
                seen.add(record.productId)
                resolution.records.append(record)
        logger.debug("resolved %s clause(s): records=%s empty=%s", len(handled), len(resolution.records), resolution.empty)
        return resolution


def clause_texts(clauses: Sequence[FilterClause]) -> Tuple[str, ...]:
    return tuple(str(clause) for clause in clauses)
