"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_timeout(name: str) -> Optional[float]:
    raw = _get_env(name, "").strip()
    if not raw:
        return None
    value = float(raw)
    return value if value > 0 else None


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    base_url: str = _get_env("CATALOG_BASE_URL", "http://localhost:8080")
    search_path: str = _get_env("CATALOG_SEARCH_PATH", "/api/catalog_system/pub/products/search/")
    page_size: int = int(_get_env("CATALOG_PAGE_SIZE", "50"))
    max_attempts: int = int(_get_env("CATALOG_MAX_ATTEMPTS", "3"))
    max_concurrent_requests: int = int(_get_env("CATALOG_MAX_CONCURRENT_REQUESTS", "6"))
    # None means no wall-clock deadline; only the attempt count bounds a page.
    request_timeout: Optional[float] = _get_timeout("CATALOG_REQUEST_TIMEOUT")
    category_window: str = _get_env("CATALOG_CATEGORY_WINDOW", "0-49")
    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()
