"""Process-wide record of which filter clauses were already asked for.

Each canonical clause string lives in exactly one state. Listing clauses
(category, price, specification, other) are keyed together with the
search's auxiliary parameters, since free text, order or sales channel change
what they match; id clauses are keyed on the clause alone. The only transitions
are ``UNSEEN -> PENDING`` (via :meth:`DedupLedger.admit`) and
``PENDING -> RESOLVED_WITH_DATA | RESOLVED_EMPTY``. Nothing ever goes back to
``UNSEEN``; entries live as long as the process.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .clauses import FilterClause, parse_clause

logger = logging.getLogger(__name__)


def ledger_key(clause: FilterClause | str, scope: str = "") -> str:
    if not scope:
        return str(clause)
    if isinstance(clause, str):
        clause = parse_clause(clause)
    if clause.is_identity:
        return str(clause)
    return f"{clause}?{scope}"


class ClauseState(str, Enum):
    UNSEEN = "unseen"
    PENDING = "pending"
    RESOLVED_EMPTY = "resolved_empty"
    RESOLVED_WITH_DATA = "resolved_with_data"


@dataclass
class _Entry:
    state: ClauseState
    owner: Optional[object] = None
    product_ids: Tuple[str, ...] = ()


class DedupLedger:
    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def state(self, clause: FilterClause | str, scope: str = "") -> ClauseState:
        with self._lock:
            entry = self._entries.get(ledger_key(clause, scope))
            return entry.state if entry else ClauseState.UNSEEN

    def admit(
        self, clauses: Iterable[FilterClause], owner: Optional[object] = None, scope: str = ""
    ) -> List[FilterClause]:
        """Return the clauses that must be fetched and mark them pending.

        Clauses that are pending elsewhere or already resolved are left out, as
        are repeats inside ``clauses``.
        """
        admitted: List[FilterClause] = []
        skipped = 0
        with self._lock:
            for clause in clauses:
                key = ledger_key(clause, scope)
                if key in self._entries:
                    skipped += 1
                    continue
                self._entries[key] = _Entry(ClauseState.PENDING, owner=owner)
                admitted.append(clause)
        logger.debug("ledger admit: admitted=%s skipped=%s", [str(c) for c in admitted], skipped)
        return admitted

    def pending_owners(
        self, clauses: Iterable[FilterClause], exclude: Optional[object] = None, scope: str = ""
    ) -> List[object]:
        """Distinct owners of the clauses that are still in flight elsewhere."""
        owners: List[object] = []
        with self._lock:
            for clause in clauses:
                entry = self._entries.get(ledger_key(clause, scope))
                if not entry or entry.state is not ClauseState.PENDING:
                    continue
                if entry.owner is None or entry.owner is exclude:
                    continue
                if any(entry.owner is seen for seen in owners):
                    continue
                owners.append(entry.owner)
        return owners

    def mark_with_data(self, clause: FilterClause | str, product_ids: Iterable[str], scope: str = "") -> bool:
        return self._resolve(ledger_key(clause, scope), ClauseState.RESOLVED_WITH_DATA, tuple(product_ids))

    def mark_empty(self, clause: FilterClause | str, scope: str = "") -> bool:
        return self._resolve(ledger_key(clause, scope), ClauseState.RESOLVED_EMPTY, ())

    def _resolve(self, key: str, state: ClauseState, product_ids: Tuple[str, ...]) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.state is not ClauseState.PENDING:
                return False
            self._entries[key] = _Entry(state, owner=None, product_ids=product_ids)
        logger.debug("ledger resolve: %s -> %s", key, state.value)
        return True

    def abandon(self, owner: object) -> List[str]:
        """Resolve as empty whatever ``owner`` still holds pending."""
        with self._lock:
            keys = [
                key
                for key, entry in self._entries.items()
                if entry.state is ClauseState.PENDING and entry.owner is owner
            ]
            for key in keys:
                self._entries[key] = _Entry(ClauseState.RESOLVED_EMPTY)
        if keys:
            logger.debug("ledger abandon: %s", keys)
        return keys

    def product_ids(self, clause: FilterClause | str, scope: str = "") -> Tuple[str, ...]:
        with self._lock:
            entry = self._entries.get(ledger_key(clause, scope))
            return entry.product_ids if entry else ()

    def counts(self) -> Dict[str, int]:
        totals = {state.value: 0 for state in ClauseState if state is not ClauseState.UNSEEN}
        with self._lock:
            for entry in self._entries.values():
                totals[entry.state.value] += 1
        return totals
