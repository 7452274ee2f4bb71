"""Split admitted clauses into result-window pages."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .clauses import FilterClause

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResultWindow:
    """Inclusive ``start``/``end`` offsets of a result page."""

    start: int
    end: int

    @property
    def header_value(self) -> str:
        return f"{self.start}-{self.end}"

    @classmethod
    def parse(cls, text: str) -> "ResultWindow":
        start, sep, end = text.strip().partition("-")
        if not sep:
            raise ValueError(f"Result window must look like 'from-to', got {text!r}")
        window = cls(int(start), int(end))
        if window.start < 0 or window.end < window.start:
            raise ValueError(f"Invalid result window {text!r}")
        return window


@dataclass(frozen=True)
class Page:
    index: int
    window: ResultWindow
    # Every page carries the full clause set; only the window differs.
    clauses: Tuple[FilterClause, ...]

    @property
    def clause_texts(self) -> List[str]:
        return [str(clause) for clause in self.clauses]


def plan_pages(clauses: Sequence[FilterClause], page_size: int = 50) -> List[Page]:
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    clause_set = tuple(clauses)
    page_count = math.ceil(len(clause_set) / page_size)
    pages = [
        Page(
            index=index,
            window=ResultWindow(index * page_size, (index + 1) * page_size - 1),
            clauses=clause_set,
        )
        for index in range(page_count)
    ]
    logger.debug("planned %s page(s) for %s clause(s)", len(pages), len(clause_set))
    return pages
