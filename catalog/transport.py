"""HTTP access to the storefront product search endpoint.

The orchestrator only depends on the :class:`SearchTransport` protocol; the
default implementation talks to the endpoint through ``httpx.AsyncClient``.
Clauses go out as repeated ``fq`` parameters and the result window both as the
``resources`` header and as ``_from``/``_to`` parameters.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import httpx

from .config import settings
from .errors import TransportFailure
from .planner import ResultWindow

logger = logging.getLogger(__name__)


class SearchTransport(Protocol):
    async def perform_search(
        self,
        clauses: Sequence[str],
        window: ResultWindow,
        params: Sequence[Tuple[str, str]],
        headers: Mapping[str, str],
    ) -> List[Dict[str, Any]]: ...


def build_query_params(
    clauses: Sequence[str], window: ResultWindow, params: Sequence[Tuple[str, str]]
) -> List[Tuple[str, str]]:
    query = [("fq", clause) for clause in clauses]
    query.extend(params)
    query.append(("_from", str(window.start)))
    query.append(("_to", str(window.end)))
    return query


class HttpSearchTransport:
    def __init__(
        self,
        base_url: str = settings.base_url,
        search_path: str = settings.search_path,
        timeout: Optional[float] = settings.request_timeout,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url
        self.search_path = search_path
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=httpx.Timeout(self.timeout))
        return self._client

    async def perform_search(
        self,
        clauses: Sequence[str],
        window: ResultWindow,
        params: Sequence[Tuple[str, str]],
        headers: Mapping[str, str],
    ) -> List[Dict[str, Any]]:
        request_headers = dict(headers)
        request_headers["resources"] = window.header_value
        query = build_query_params(clauses, window, params)
        try:
            response = await self._get_client().get(self.search_path, params=query, headers=request_headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportFailure(
                f"Search endpoint returned HTTP {exc.response.status_code}", window=window.header_value
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportFailure(f"Search request failed: {exc!r}", window=window.header_value) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportFailure("Search endpoint returned invalid JSON", window=window.header_value) from exc
        if not isinstance(payload, list):
            raise TransportFailure(
                f"Search endpoint returned {type(payload).__name__}, expected a list", window=window.header_value
            )
        logger.debug("search window=%s clauses=%s records=%s", window.header_value, len(clauses), len(payload))
        return payload

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


@lru_cache(maxsize=1)
def get_transport() -> HttpSearchTransport:
    logger.info("Using catalog search endpoint %s%s", settings.base_url, settings.search_path)
    return HttpSearchTransport()
