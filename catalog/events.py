"""Typed observer registration for cache and operation notifications."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Tuple

from .models import ProductRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationSummary:
    clauses: Tuple[str, ...]
    admitted: Tuple[str, ...]
    pages: int
    failed_pages: int
    records: int
    empty: Tuple[str, ...]
    elapsed_ms: float


RecordListener = Callable[[ProductRecord], None]
SettledListener = Callable[[OperationSummary], None]


class CatalogEvents:
    def __init__(self) -> None:
        self._record_listeners: List[RecordListener] = []
        self._settled_listeners: List[SettledListener] = []

    def on_record_stored(self, listener: RecordListener) -> RecordListener:
        self._record_listeners.append(listener)
        return listener

    def on_operation_settled(self, listener: SettledListener) -> SettledListener:
        self._settled_listeners.append(listener)
        return listener

    def remove(self, listener: Callable[..., None]) -> None:
        for listeners in (self._record_listeners, self._settled_listeners):
            if listener in listeners:
                listeners.remove(listener)

    def record_stored(self, record: ProductRecord) -> None:
        for listener in list(self._record_listeners):
            try:
                listener(record.model_copy(deep=True))
            except Exception:  # noqa: BLE001
                logger.exception("record listener %r failed", listener)

    def operation_settled(self, summary: OperationSummary) -> None:
        for listener in list(self._settled_listeners):
            try:
                listener(summary)
            except Exception:  # noqa: BLE001
                logger.exception("settled listener %r failed", listener)
