"""Terminal client that reuses the in-process catalog logic."""
from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Iterable, Optional

from catalog.config import settings
from catalog.errors import CatalogError, EmptyResultError
from catalog.models import ProductRecord
from catalog.service import Catalog, get_catalog
from catalog.transport import get_transport

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


def pretty_print_record(label: str, record: Optional[ProductRecord]) -> None:
    if record is None:
        print(f"{RED}{label}: not found{RESET}")
        return
    name = getattr(record, "productName", None) or "-"
    skus = ",".join(record.sku_ids) or "-"
    print(f"{GREEN}{label}{RESET} | productId={record.productId} | skus={skus} | {name}")


def pretty_print_records(label: str, records: Iterable[ProductRecord]) -> None:
    records = list(records)
    print(f"{label} | results: {len(records)}")
    for idx, record in enumerate(records, start=1):
        pretty_print_record(f"  {idx:02d}", record)


async def run(args: argparse.Namespace) -> int:
    catalog: Catalog = get_catalog()
    try:
        for product_id in args.product or []:
            pretty_print_record(f"product {product_id}", await catalog.search_product(product_id))
        for sku_id in args.sku or []:
            pretty_print_record(f"sku {sku_id}", await catalog.search_sku(sku_id))
        if args.fq:
            try:
                records = await catalog.search({"fq": args.fq})
            except EmptyResultError as exc:
                print(f"{RED}{exc}{RESET}")
            else:
                pretty_print_records("search", records)
        if args.category:
            try:
                records = await catalog.search_category({"fq": args.category})
            except EmptyResultError as exc:
                print(f"{RED}{exc}{RESET}")
            else:
                pretty_print_records("category", records)
    except CatalogError as exc:
        print(f"{RED}error: {exc}{RESET}")
        return 1
    finally:
        await get_transport().aclose()
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the catalog cache")
    parser.add_argument("--product", action="append", help="Product id to look up (repeatable)")
    parser.add_argument("--sku", action="append", help="Sku id to look up (repeatable)")
    parser.add_argument("--fq", action="append", help="Filter clause such as productId:42 (repeatable)")
    parser.add_argument("--category", action="append", help="Category or price clause (repeatable)")
    args = parser.parse_args(list(argv) if argv is not None else None)

    if not any((args.product, args.sku, args.fq, args.category)):
        parser.error("nothing to look up")
    logging.basicConfig(level=logging.getLevelName(settings.log_level.upper()))
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
