"""Error taxonomy for catalog lookups."""
from __future__ import annotations

from typing import Iterable, Optional

MESSAGES = {
    "searchParamsNotDefined": "Search parameters is not defined",
    "paramsNotAnObject": "Param is not a valid Object",
    "productIdNotDefined": "Product ID is not defined",
    "skuIdNotDefined": "Sku ID is not defined",
    "productIdArrayNotAnArray": "'productIdArray' is not an array",
    "skuIdArrayNotAnArray": "'skuIdArray' is not an array",
    "productIdArrayNotDefined": "'productIdArray' is not defined",
    "skuIdArrayNotDefined": "'skuIdArray' is not defined",
    "fqPropertyNotFound": "The property 'fq' was not found",
    "clauseMalformed": "Filter clause must look like 'field:value'",
}


class CatalogError(Exception):
    """Base class for every error raised by the catalog layer."""


class ValidationError(CatalogError):
    """Caller input is missing or malformed; nothing was started."""

    def __init__(self, code: str, field: str, detail: Optional[str] = None) -> None:
        self.code = code
        self.field = field
        message = MESSAGES.get(code, code)
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class TransportFailure(CatalogError):
    """A single page request could not be completed."""

    def __init__(self, message: str, *, window: Optional[str] = None, attempts: int = 1) -> None:
        self.window = window
        self.attempts = attempts
        super().__init__(message)


class EmptyResultError(CatalogError):
    """No clause of an operation resolved to a product."""

    def __init__(self, clauses: Iterable[str]) -> None:
        self.clauses = tuple(clauses)
        listed = ", ".join(self.clauses) or "<none>"
        super().__init__(f"No products found for: {listed}")
