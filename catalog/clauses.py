"""Filter clause parsing, normalization and routing hints.

Every query that reaches the storefront search endpoint is expressed as a set
of ``fq`` clauses of the form ``field:value``:

    productId:42                   -> a single product
    skuId:77                       -> the product owning sku 77
    C:/1000/2000/                  -> a category path
    P:[10 TO 100]                  -> a price range
    specificationFilter_25:Blue    -> a specification filter

:func:`parse_clause` turns raw strings into :class:`FilterClause` objects with
a canonical text form, which is what the ledger and cache key on. Category and
price clauses also contribute to the ``map`` routing parameter that the
endpoint needs to interpret positional category segments.
"""
from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import ValidationError

# Legacy price form without the colon, e.g. ``P[10 TO 100]``; kept verbatim.
_LEGACY_PRICE_RE = re.compile(r"^P(\[.+\])$")
_PRICE_VALUE_RE = re.compile(r"^\[.+\]$")
_SPECIFICATION_PREFIX = "specificationFilter_"


class ClauseKind(str, Enum):
    CATEGORY = "category"
    PRICE = "price"
    PRODUCT_ID = "productId"
    SKU_ID = "skuId"
    SPECIFICATION = "specification"
    OTHER = "other"


def classify_field(field_name: str, value: str = "") -> ClauseKind:
    if field_name == "productId":
        return ClauseKind.PRODUCT_ID
    if field_name == "skuId":
        return ClauseKind.SKU_ID
    if field_name == "C":
        return ClauseKind.CATEGORY
    if field_name == "P" and _PRICE_VALUE_RE.match(value):
        return ClauseKind.PRICE
    if field_name.startswith(_SPECIFICATION_PREFIX):
        return ClauseKind.SPECIFICATION
    return ClauseKind.OTHER


@dataclass(frozen=True)
class FilterClause:
    field: str
    value: str
    # Empty for the legacy price form ``P[a TO b]``, which is sent as written.
    separator: str = ":"

    @property
    def kind(self) -> ClauseKind:
        return classify_field(self.field, self.value)

    @property
    def is_identity(self) -> bool:
        """True for clauses that name exactly one product."""
        return self.kind in (ClauseKind.PRODUCT_ID, ClauseKind.SKU_ID)

    def __str__(self) -> str:
        return f"{self.field}{self.separator}{self.value}"


def parse_clause(raw: Any) -> FilterClause:
    """Parse ``field:value`` into a :class:`FilterClause`.

    Only the first colon separates field from value, so price ranges and
    specification values may contain colons of their own.
    """
    if isinstance(raw, FilterClause):
        return raw
    if not isinstance(raw, str):
        raise ValidationError("clauseMalformed", "fq", repr(raw))
    text = raw.strip()
    legacy = _LEGACY_PRICE_RE.match(text)
    if legacy:
        return FilterClause("P", legacy.group(1), separator="")
    field_name, sep, value = text.partition(":")
    field_name = field_name.strip()
    value = value.strip()
    if not sep or not field_name or not value:
        raise ValidationError("clauseMalformed", "fq", repr(raw))
    return FilterClause(field_name, value)


def map_hints(clause: FilterClause) -> List[str]:
    kind = clause.kind
    if kind is ClauseKind.CATEGORY:
        return ["c" for segment in clause.value.split("/") if segment.strip().isdigit()]
    if kind is ClauseKind.PRICE:
        return ["priceFrom"]
    return []


def derive_map(clauses: Iterable[FilterClause]) -> str:
    """Comma-joined routing hints in clause order."""
    hints: List[str] = []
    for clause in clauses:
        hints.extend(map_hints(clause))
    return ",".join(hints)


def normalize_id(value: Any, *, code: str, field_name: str) -> str:
    if value is None or isinstance(value, bool):
        raise ValidationError(code, field_name)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    raise ValidationError(code, field_name, repr(value))


def normalize_id_array(
    values: Any, *, missing_code: str, not_array_code: str, field_name: str, item_code: str
) -> List[str]:
    if values is None:
        raise ValidationError(missing_code, field_name)
    if isinstance(values, (str, bytes, Mapping)) or not isinstance(values, (Sequence, set, frozenset)):
        raise ValidationError(not_array_code, field_name)
    return [normalize_id(value, code=item_code, field_name=field_name) for value in values]


def product_clause(product_id: str) -> FilterClause:
    return FilterClause("productId", product_id)


def sku_clause(sku_id: str) -> FilterClause:
    return FilterClause("skuId", sku_id)


@dataclass(frozen=True)
class SearchRequest:
    """One logical search call: ``fq`` clauses plus pass-through parameters."""

    clauses: Tuple[FilterClause, ...]
    params: Tuple[Tuple[str, str], ...] = ()
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def clause_texts(self) -> List[str]:
        return [str(clause) for clause in self.clauses]

    @property
    def scope(self) -> str:
        """Auxiliary parameters in a stable order, e.g. ``O=OrderByPriceASC&ft=shoes``."""
        return "&".join(f"{key}={value}" for key, value in sorted(self.params))

    def with_params(self, *extra: Tuple[str, str]) -> "SearchRequest":
        return SearchRequest(self.clauses, self.params + tuple(extra), dict(self.headers))


def _flatten_param(key: str, value: Any) -> List[Tuple[str, str]]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [(key, str(item)) for item in value if item is not None]
    return [(key, str(value))]


def build_search_request(query: Any, headers: Optional[Mapping[str, Any]] = None) -> SearchRequest:
    """Validate a structured query and turn it into a :class:`SearchRequest`.

    ``query`` must be a mapping with an ``fq`` entry (a clause string or a list
    of them). Other keys such as ``ft``, ``O``, ``sc`` or ``map`` are forwarded
    as query parameters without deduplication.
    """
    if query is None:
        raise ValidationError("searchParamsNotDefined", "query")
    if not isinstance(query, Mapping):
        raise ValidationError("paramsNotAnObject", "query")
    raw_fq = query.get("fq")
    if raw_fq is None or raw_fq == "":
        raise ValidationError("fqPropertyNotFound", "fq")
    if isinstance(raw_fq, (str, FilterClause)):
        raw_fq = [raw_fq]
    if not isinstance(raw_fq, (list, tuple)):
        raise ValidationError("paramsNotAnObject", "fq")
    clauses = tuple(parse_clause(item) for item in raw_fq)

    params: List[Tuple[str, str]] = []
    for key, value in query.items():
        if key == "fq":
            continue
        params.extend(_flatten_param(str(key), value))

    if headers is not None and not isinstance(headers, Mapping):
        raise ValidationError("paramsNotAnObject", "headers")
    header_map = {str(key): str(value) for key, value in (headers or {}).items()}
    return SearchRequest(clauses=clauses, params=tuple(params), headers=header_map)
