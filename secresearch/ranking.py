"""Post-aggregation filtering and sorting.

Pure functions over lists of ``SearchRecord``.  All sorts are stable, so
records that compare equal keep their post-filter order.
"""

import datetime as dt

from dateutil import parser as date_parser

from .models import Category, SearchRecord, Severity

SEVERITY_RANK: dict[Severity | None, int] = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.UNKNOWN: 0,
    None: 0,
}

HIGH_SEVERITY = "high-severity"

FILTER_CATEGORIES: dict[str, Category] = {
    "cve": Category.VULNERABILITY,
    "poc": Category.PROOF_OF_CONCEPT,
    "news": Category.NEWS,
    "advisory": Category.ADVISORY,
}
_TOKEN_BY_NAME = {c.value.lower(): token for token, c in FILTER_CATEGORIES.items()}

SORT_KEYS = ("date", "severity", "relevance")


def normalize_filter(token: str | None) -> str:
    """Canonical filter token; unrecognized values become ``all``.

    Category names (``VulnerabilityRecord``, ...) are accepted as
    aliases of their short tokens.

    Args:
        token: Raw ``filter`` parameter.

    Returns:
        One of ``all``, ``cve``, ``poc``, ``news``, ``advisory`` or
        ``high-severity``.
    """
    t = (token or "").strip().lower()
    if t == HIGH_SEVERITY or t in FILTER_CATEGORIES:
        return t
    return _TOKEN_BY_NAME.get(t, "all")


def normalize_sort(token: str | None) -> str:
    """Canonical sort key; unrecognized values become ``date``."""
    t = (token or "").strip().lower()
    return t if t in SORT_KEYS else "date"


def filter_records(records: list[SearchRecord], token: str | None) -> list[SearchRecord]:
    """Keep only the records matching a filter token.

    Args:
        records: Merged records.
        token: Filter token (raw or normalized).

    Returns:
        Matching records in their original relative order.
    """
    canonical = normalize_filter(token)
    if canonical == "all":
        return list(records)
    if canonical == HIGH_SEVERITY:
        return [r for r in records if r.severity_label in (Severity.CRITICAL, Severity.HIGH)]
    return [r for r in records if r.category is FILTER_CATEGORIES[canonical]]


def severity_rank(record: SearchRecord) -> int:
    return SEVERITY_RANK.get(record.severity_label, 0)


def published_key(record: SearchRecord) -> tuple[bool, dt.datetime]:
    """Sort key for ``date``: parseable dates first, then newest."""
    try:
        parsed = date_parser.parse(record.published_date)
    except (ValueError, OverflowError):
        return False, dt.datetime.min
    return True, parsed.replace(tzinfo=None)


def sort_records(records: list[SearchRecord], sort: str | None) -> list[SearchRecord]:
    """Order records by a sort key.

    ``date`` is newest first with unparseable dates last, ``severity``
    follows ``SEVERITY_RANK`` descending, ``relevance`` keeps the input
    order.

    Args:
        records: Filtered records.
        sort: Sort key (raw or normalized).

    Returns:
        A new, stably sorted list.
    """
    key = normalize_sort(sort)
    if key == "severity":
        return sorted(records, key=severity_rank, reverse=True)
    if key == "date":
        return sorted(records, key=published_key, reverse=True)
    return list(records)


def apply(records: list[SearchRecord], filter_token: str | None, sort: str | None) -> list[SearchRecord]:
    """Filter, then sort."""
    return sort_records(filter_records(records, filter_token), sort)
