"""FastAPI application exposing the catalog cache."""
from __future__ import annotations

import logging
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Query

from .config import settings
from .errors import EmptyResultError, ValidationError
from .models import HealthResponse, ProductListResponse, ProductMapResponse, ProductRecord
from .service import Catalog, get_catalog
from .transport import get_transport

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# Force a predictable logging setup even when run under uvicorn. ``force=True``
# replaces uvicorn's default handlers.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "httpx"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

app = FastAPI(title="Catalog Cache Service")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await get_transport().aclose()
    logger.info("Closed catalog search transport")


def _split_ids(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


@app.get("/health", response_model=HealthResponse)
async def health(catalog: Catalog = Depends(get_catalog)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        cached_products=len(catalog.cache),
        cached_skus=catalog.cache.sku_count,
        clauses=catalog.ledger.counts(),
    )


@app.get("/search", response_model=ProductListResponse)
async def search(
    fq: List[str] = Query(..., description="Filter clause such as productId:42"),
    ft: str | None = Query(None, description="Free text"),
    O: str | None = Query(None, description="Sort order"),
    sc: str | None = Query(None, description="Sales channel"),
    catalog: Catalog = Depends(get_catalog),
) -> ProductListResponse:
    query = {"fq": fq, "ft": ft, "O": O, "sc": sc}
    try:
        records = await catalog.search(query)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except EmptyResultError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ProductListResponse(count=len(records), results=records)


@app.get("/category", response_model=ProductListResponse)
async def category(
    fq: List[str] = Query(..., description="Category or price clause such as C:/1000/"),
    catalog: Catalog = Depends(get_catalog),
) -> ProductListResponse:
    try:
        records = await catalog.search_category({"fq": fq})
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except EmptyResultError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ProductListResponse(count=len(records), results=records)


@app.get("/products/{product_id}", response_model=ProductRecord)
async def product(product_id: str, catalog: Catalog = Depends(get_catalog)) -> ProductRecord:
    try:
        record = await catalog.search_product(product_id)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if record is None:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
    return record


@app.get("/skus/{sku_id}", response_model=ProductRecord)
async def sku(sku_id: str, catalog: Catalog = Depends(get_catalog)) -> ProductRecord:
    try:
        record = await catalog.search_sku(sku_id)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if record is None:
        raise HTTPException(status_code=404, detail=f"Sku {sku_id} not found")
    return record


@app.get("/products", response_model=ProductMapResponse)
async def products(
    ids: str = Query(..., description="Comma separated product ids"),
    catalog: Catalog = Depends(get_catalog),
) -> ProductMapResponse:
    try:
        found = await catalog.search_product_array(_split_ids(ids))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ProductMapResponse(count=len(found), results=found)


@app.get("/skus", response_model=ProductMapResponse)
async def skus(
    ids: str = Query(..., description="Comma separated sku ids"),
    catalog: Catalog = Depends(get_catalog),
) -> ProductMapResponse:
    try:
        found = await catalog.search_sku_array(_split_ids(ids))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ProductMapResponse(count=len(found), results=found)
