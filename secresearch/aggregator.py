"""Concurrent fan-out across all configured sources.

One search opens one ``aiohttp`` session, dispatches every adapter at
once and waits for all of them to settle.  A failing source costs only
its own records: the others still contribute, and the failure shows up
in the per-source outcomes.

Usage from synchronous code::

    from secresearch.aggregator import build_aggregator
    response = build_aggregator(config).search("CVE-2024-4577")
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from . import ranking
from .config import AppConfig
from .models import CallStatus, SearchRecord, SourceCallOutcome
from .query import ClassifiedQuery, classify_query
from .ratelimit import RateLimiter
from .sources import AdapterResult, SourceAdapter, build_adapters, credential_status
from .sources.base import USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=60, connect=10)

SessionFactory = Callable[[], aiohttp.ClientSession]


def default_session() -> aiohttp.ClientSession:
    return aiohttp.ClientSession(headers={"User-Agent": USER_AGENT}, timeout=DEFAULT_TIMEOUT)


@dataclass
class SearchResponse:
    """Merged, ranked result of one search.

    Attributes:
        query: Stripped query text as received.
        filter: Canonical filter token that was applied.
        sort: Canonical sort key that was applied.
        records: Filtered and sorted records.
        outcomes: One outcome per dispatched adapter, in dispatch order.
        sources: Provider label → records contributed (before filtering).
        credentials_active: Provider label → whether a key is configured.
        total_sources: Number of adapters dispatched.
        duration_ms: Wall time of the whole search.
        error: Set only when the search failed outside adapter dispatch.
    """

    query: str
    filter: str = "all"
    sort: str = "date"
    records: list[SearchRecord] = field(default_factory=list)
    outcomes: list[SourceCallOutcome] = field(default_factory=list)
    sources: dict[str, int] = field(default_factory=dict)
    credentials_active: dict[str, bool] = field(default_factory=dict)
    total_sources: int = 0
    duration_ms: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def total(self) -> int:
        return len(self.records)

    def to_payload(self) -> dict[str, Any]:
        """Build the JSON body served by ``GET /search``."""
        if self.error is not None:
            return {"error": self.error, "results": [], "total": 0}
        return {
            "results": [r.to_dict() for r in self.records],
            "total": self.total,
            "query": self.query,
            "filter": self.filter,
            "sort": self.sort,
            "meta": {
                "durationMs": self.duration_ms,
                "sources": dict(self.sources),
                "totalSources": self.total_sources,
                "credentialsActive": dict(self.credentials_active),
                "outcomes": [o.to_dict() for o in self.outcomes],
            },
        }


class Aggregator:
    """Fan a query out to every adapter and merge what comes back.

    Args:
        adapters: Adapters in dispatch order.
        credentials: Provider label → key configured, echoed in metadata.
        session_factory: Builds the HTTP session for one search.
    """

    def __init__(
        self,
        adapters: list[SourceAdapter],
        credentials: dict[str, bool] | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.adapters = list(adapters)
        self.credentials = dict(credentials or {})
        self._session_factory = session_factory or default_session

    async def search_all(self, query: str, filter: str | None = "all", sort: str | None = "date") -> SearchResponse:
        """Run one search across all adapters.

        A blank query returns an empty response without touching the
        network.  Adapter failures never fail the search; only an error
        outside adapter dispatch sets ``SearchResponse.error``.

        Args:
            query: Raw query text.
            filter: Filter token (``all``, ``cve``, ``poc``, ``news``,
                ``advisory``, ``high-severity``).
            sort: ``date``, ``severity`` or ``relevance``.

        Returns:
            ``SearchResponse`` with ranked records and per-source outcomes.
        """
        started = time.monotonic()
        response = SearchResponse(
            query=(query or "").strip(),
            filter=ranking.normalize_filter(filter),
            sort=ranking.normalize_sort(sort),
            credentials_active=dict(self.credentials),
        )

        classified = classify_query(query)
        if classified.is_blank:
            return response

        try:
            results = await self._fan_out(classified)
            merged: list[SearchRecord] = []
            for adapter, result in zip(self.adapters, results):
                merged.extend(result.records)
                response.outcomes.append(result.outcome)
                response.sources[adapter.label] = response.sources.get(adapter.label, 0) + len(result.records)
            response.records = ranking.apply(merged, response.filter, response.sort)
            response.total_sources = len(self.adapters)
        except Exception as e:
            logger.exception("Search for %r failed", response.query)
            response.records = []
            response.error = f"Search failed: {e}"

        response.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Search %r (%s): %d results from %d sources in %dms",
            response.query,
            classified.kind.value,
            response.total,
            response.total_sources,
            response.duration_ms,
        )
        return response

    def search(self, query: str, filter: str | None = "all", sort: str | None = "date") -> SearchResponse:
        """Synchronous wrapper around ``search_all``."""
        return asyncio.run(self.search_all(query, filter=filter, sort=sort))

    async def _fan_out(self, query: ClassifiedQuery) -> list[AdapterResult]:
        if not self.adapters:
            return []
        async with self._session_factory() as session:
            tasks = [adapter.search(session, query) for adapter in self.adapters]
            settled = await asyncio.gather(*tasks, return_exceptions=True)

        results: list[AdapterResult] = []
        for adapter, r in zip(self.adapters, settled):
            if isinstance(r, BaseException):
                logger.error("%s: adapter raised %s", adapter.label, r)
                outcome = SourceCallOutcome(
                    source_name=adapter.label,
                    status=CallStatus.NETWORK_ERROR,
                    error_detail=f"unexpected error: {r}",
                )
                results.append(AdapterResult(records=[], outcome=outcome))
            else:
                results.append(r)
        return results


def build_aggregator(config: AppConfig, limiter: RateLimiter | None = None) -> Aggregator:
    """Wire adapters, the shared rate limiter and credential flags.

    Args:
        config: Validated application configuration.
        limiter: Limiter to share across searches (a new one by default).

    Returns:
        Ready-to-use ``Aggregator``.
    """
    limiter = limiter or RateLimiter()
    adapters = build_adapters(config, limiter)
    logger.debug("Configured sources: %s", ", ".join(a.label for a in adapters) or "none")
    return Aggregator(adapters, credentials=credential_status(config))
