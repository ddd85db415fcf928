"""Abstract base class for upstream source adapters.

An adapter wraps one upstream API.  ``SourceAdapter.search`` is the only
public entry point and it never raises: rate limiting, request building,
HTTP outcome classification and record mapping all happen inside, and
every failure comes back as a ``SourceCallOutcome`` with zero records.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import aiohttp
from dateutil import parser as date_parser

from ..models import SUMMARY_MAX_LENGTH, CallStatus, SearchRecord, Severity, SourceCallOutcome
from ..query import ClassifiedQuery
from ..ratelimit import RateLimiter

logger = logging.getLogger(__name__)

USER_AGENT = "SecResearch/0.3 (+https://github.com/)"

_SEVERITY_LABELS = {
    "CRITICAL": Severity.CRITICAL,
    "HIGH": Severity.HIGH,
    "IMPORTANT": Severity.HIGH,
    "MEDIUM": Severity.MEDIUM,
    "MODERATE": Severity.MEDIUM,
    "LOW": Severity.LOW,
}

_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)


class UnexpectedPayload(ValueError):
    """Raised when an upstream body does not have the expected shape."""


@dataclass
class HttpRequest:
    """A provider-specific outbound request."""

    method: str
    url: str
    params: dict[str, str] | None = None
    json: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class HttpReply:
    """Status, lower-cased headers and raw body of an upstream response."""

    status: int
    headers: dict[str, str]
    body: bytes


@dataclass
class AdapterResult:
    """Records and diagnostic outcome of one adapter call."""

    records: list[SearchRecord]
    outcome: SourceCallOutcome


# ─── Normalization helpers ───────────────────────────────────────────────────


def truncate(text: str, limit: int = SUMMARY_MAX_LENGTH) -> str:
    """Cut ``text`` to ``limit`` characters, appending ``...`` when cut."""
    text = text or ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def severity_from_score(score: float) -> Severity:
    """Bucket a 0–10 score into the four-level scale.

    Args:
        score: CVSS-style base score.

    Returns:
        ``Critical`` ≥ 9, ``High`` ≥ 7, ``Medium`` ≥ 4, else ``Low``.
    """
    if score >= 9.0:
        return Severity.CRITICAL
    if score >= 7.0:
        return Severity.HIGH
    if score >= 4.0:
        return Severity.MEDIUM
    return Severity.LOW


def normalize_severity_label(label: Any) -> Severity | None:
    """Map a provider's native severity label onto the four-level scale.

    Unknown labels (including CVSS ``NONE``) map to ``None``.
    """
    if not isinstance(label, str):
        return None
    return _SEVERITY_LABELS.get(label.strip().upper())


def coerce_score(value: Any) -> float | None:
    """Return ``value`` as a float in [0, 10], or ``None``."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if 0.0 <= score <= 10.0:
        return score
    return None


def format_published(raw: Any) -> str:
    """Render a source timestamp as ``YYYY-MM-DD``.

    Returns ``""`` when the source supplied nothing parseable or only a
    partial date (``"2024"``, ``"June 2024"``, ``"Monday"``); a date is
    never made up.
    """
    if not raw or not isinstance(raw, str):
        return ""
    # dateutil fills missing fields from ``default``; two different
    # defaults agree only when year, month and day were all present.
    try:
        first = date_parser.parse(raw, default=_DEFAULT_A).date()
        second = date_parser.parse(raw, default=_DEFAULT_B).date()
    except (ValueError, OverflowError):
        return ""
    if first != second:
        return ""
    return first.strftime("%Y-%m-%d")


# ─── Adapter base ────────────────────────────────────────────────────────────


class SourceAdapter(ABC):
    """Base class for all upstream adapters.

    Subclasses set ``name``/``label``/``requires_credential`` and
    implement ``build_request``, ``extract_items`` and ``to_record``.
    They may override ``classify_reply`` for provider-specific statuses.

    Attributes:
        name: Source id, also the rate-limiter key.
        label: Human-readable provider label used as ``sourceName``.
        requires_credential: Whether the source is skipped without a key.
    """

    name: str = "base"
    label: str = "Base"
    requires_credential: bool = False

    def __init__(
        self,
        limiter: RateLimiter,
        api_key: str | None = None,
        limit: int = 20,
        timeout: float = 10.0,
        summary_max_length: int = SUMMARY_MAX_LENGTH,
    ) -> None:
        self.limiter = limiter
        self.api_key = api_key or None
        self.limit = limit
        self.timeout = timeout
        self.summary_max_length = summary_max_length

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    @property
    def configured(self) -> bool:
        """Whether this adapter should take part in a fan-out."""
        return self.has_credential or not self.requires_credential

    @abstractmethod
    def build_request(self, query: ClassifiedQuery, limit: int) -> HttpRequest:
        """Build the provider request for a non-blank query."""
        ...

    @abstractmethod
    def extract_items(self, payload: Any, query: ClassifiedQuery) -> list[Any]:
        """Pull the list of raw items out of a decoded body.

        Raises:
            UnexpectedPayload: if the body doesn't have the expected shape.
        """
        ...

    @abstractmethod
    def to_record(self, item: dict[str, Any]) -> SearchRecord | None:
        """Map one raw item to a ``SearchRecord`` (``None`` to skip it)."""
        ...

    async def search(
        self,
        session: aiohttp.ClientSession,
        query: ClassifiedQuery,
        limit: int | None = None,
    ) -> AdapterResult:
        """Run one rate-limited, deadline-bounded call against the source.

        Args:
            session: Shared HTTP session for the current search.
            query: Classified query.
            limit: Result-count limit (defaults to the configured one).

        Returns:
            ``AdapterResult``; never raises.
        """
        if query.is_blank:
            return self._result([], CallStatus.EMPTY_RESULT, 0, "blank query, no request issued")

        limit = limit or self.limit
        await self.limiter.acquire(self.name)
        started = time.monotonic()
        records: list[SearchRecord] = []
        try:
            records, status, detail = await asyncio.wait_for(
                self._run(session, query, limit),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            status, detail = CallStatus.TIMEOUT, f"no response within {self.timeout:g}s"
        except aiohttp.ClientError as e:
            status, detail = CallStatus.NETWORK_ERROR, str(e) or type(e).__name__
        except Exception as e:
            logger.exception("%s: unexpected adapter failure", self.name)
            status, detail = CallStatus.NETWORK_ERROR, f"unexpected error: {e}"

        elapsed_ms = int((time.monotonic() - started) * 1000)
        return self._result(records, status, elapsed_ms, detail)

    async def _run(
        self,
        session: aiohttp.ClientSession,
        query: ClassifiedQuery,
        limit: int,
    ) -> tuple[list[SearchRecord], CallStatus, str | None]:
        request = self.build_request(query, limit)
        reply = await self._send(session, request)

        status, detail = self.classify_reply(reply)
        if status is not CallStatus.SUCCESS:
            return [], status, detail

        try:
            items = self.extract_items(self.decode(reply), query)
        except UnexpectedPayload as e:
            return [], CallStatus.EMPTY_RESULT, f"unexpected payload: {e}"

        records = self._to_records(items)[:limit]
        if not records:
            return [], CallStatus.EMPTY_RESULT, None
        return records, CallStatus.SUCCESS, None

    async def _send(self, session: aiohttp.ClientSession, request: HttpRequest) -> HttpReply:
        logger.debug("%s: %s %s params=%s", self.name, request.method, request.url, request.params)
        headers = {"User-Agent": USER_AGENT, **request.headers}
        async with session.request(
            request.method,
            request.url,
            params=request.params,
            json=request.json,
            headers=headers,
        ) as resp:
            body = await resp.read()
            return HttpReply(
                status=resp.status,
                headers={str(k).lower(): str(v) for k, v in resp.headers.items()},
                body=body,
            )

    def classify_reply(self, reply: HttpReply) -> tuple[CallStatus, str | None]:
        """Map an HTTP reply onto a call status.

        2xx with a body is ``SUCCESS``; 404 means no match and is
        ``EMPTY_RESULT``, not an error.
        """
        if 200 <= reply.status < 300:
            if not reply.body.strip():
                return CallStatus.EMPTY_RESULT, "empty response body"
            return CallStatus.SUCCESS, None
        if reply.status == 404:
            return CallStatus.EMPTY_RESULT, None
        if reply.status in (401, 403):
            return CallStatus.AUTH_ERROR, f"HTTP {reply.status}"
        if reply.status == 429:
            return CallStatus.RATE_LIMITED, "HTTP 429"
        return CallStatus.NETWORK_ERROR, f"HTTP {reply.status}"

    def decode(self, reply: HttpReply) -> Any:
        """Decode a JSON body.

        Raises:
            UnexpectedPayload: if the body is not valid JSON.
        """
        try:
            return json.loads(reply.body.decode("utf-8", errors="replace"))
        except ValueError as e:
            raise UnexpectedPayload(f"invalid JSON ({e})") from e

    def _to_records(self, items: list[Any]) -> list[SearchRecord]:
        records: list[SearchRecord] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                record = self.to_record(item)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug("%s: skipping malformed item: %s", self.name, e)
                continue
            if record is not None:
                records.append(record)
        return records

    def _result(
        self,
        records: list[SearchRecord],
        status: CallStatus,
        elapsed_ms: int,
        detail: str | None = None,
    ) -> AdapterResult:
        outcome = SourceCallOutcome(
            source_name=self.label,
            status=status,
            elapsed_millis=elapsed_ms,
            record_count=len(records),
            error_detail=detail,
        )
        if not outcome.ok:
            logger.warning("%s: %s (%s)", self.label, status.value, detail)
        return AdapterResult(records=records, outcome=outcome)
