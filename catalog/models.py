"""Pydantic models for product payloads and API responses."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_id(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, str)):
        return str(value).strip()
    return value


class SkuItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    itemId: str = Field(..., min_length=1)

    @field_validator("itemId", mode="before")
    @classmethod
    def _normalize_item_id(cls, value: Any) -> Any:
        return _coerce_id(value)


class ProductRecord(BaseModel):
    """A product as returned by the storefront search endpoint.

    Only ``productId`` and ``items[].itemId`` are interpreted; every other
    field of the payload is kept untouched. Ids are stored as strings, and
    integral floats such as ``42.0`` become ``"42"``.
    """

    model_config = ConfigDict(extra="allow")

    productId: str = Field(..., min_length=1)
    items: list[SkuItem] = Field(default_factory=list)

    @field_validator("productId", mode="before")
    @classmethod
    def _normalize_product_id(cls, value: Any) -> Any:
        return _coerce_id(value)

    @property
    def sku_ids(self) -> list[str]:
        return [item.itemId for item in self.items]


class ProductListResponse(BaseModel):
    count: int
    results: list[ProductRecord]


class ProductMapResponse(BaseModel):
    count: int
    results: dict[str, ProductRecord]


class HealthResponse(BaseModel):
    status: str
    cached_products: int
    cached_skus: int
    clauses: dict[str, int]
