"""In-memory product store keyed by product id and sku id."""
from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from .models import ProductRecord

logger = logging.getLogger(__name__)


class ProductCache:
    """Two maps updated together: ``productId -> record`` and ``skuId -> productId``.

    Records are copied on the way in and on the way out, so nothing a caller
    holds can alter a cached entry.
    """

    def __init__(self) -> None:
        self._products: Dict[str, ProductRecord] = {}
        self._sku_owner: Dict[str, str] = {}
        self._lock = threading.Lock()

    def store(self, record: ProductRecord) -> ProductRecord:
        stored = record.model_copy(deep=True)
        product_id = stored.productId
        with self._lock:
            previous = self._products.get(product_id)
            self._products[product_id] = stored
            if previous is not None:
                current = set(stored.sku_ids)
                for sku_id in previous.sku_ids:
                    if sku_id not in current and self._sku_owner.get(sku_id) == product_id:
                        del self._sku_owner[sku_id]
            for sku_id in stored.sku_ids:
                self._sku_owner[sku_id] = product_id
        logger.debug("cache_store product=%s skus=%s", product_id, stored.sku_ids)
        return stored.model_copy(deep=True)

    def lookup_by_product(self, product_id: str) -> Optional[ProductRecord]:
        with self._lock:
            record = self._products.get(str(product_id))
        return record.model_copy(deep=True) if record is not None else None

    def lookup_by_sku(self, sku_id: str) -> Optional[ProductRecord]:
        with self._lock:
            product_id = self._sku_owner.get(str(sku_id))
            record = self._products.get(product_id) if product_id is not None else None
        return record.model_copy(deep=True) if record is not None else None

    def owner_of(self, sku_id: str) -> Optional[str]:
        with self._lock:
            return self._sku_owner.get(str(sku_id))

    def has_product(self, product_id: str) -> bool:
        with self._lock:
            return str(product_id) in self._products

    def has_sku(self, sku_id: str) -> bool:
        with self._lock:
            return str(sku_id) in self._sku_owner

    @property
    def sku_count(self) -> int:
        with self._lock:
            return len(self._sku_owner)

    def __len__(self) -> int:
        with self._lock:
            return len(self._products)
