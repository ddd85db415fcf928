"""Query classification.

Pure functions that decide whether a raw search string is a CVE
identifier or a free-text keyword query.  No I/O; every input string
yields a classification.
"""

import enum
import re
from dataclasses import dataclass

CVE_ID_RE = re.compile(r"^CVE-(\d{4})-(\d{4,})$", flags=re.IGNORECASE)


class QueryKind(str, enum.Enum):
    """How a query should be matched by identifier-aware sources."""

    STRUCTURED_ID = "StructuredId"
    FREE_TEXT = "FreeText"


@dataclass(frozen=True)
class ClassifiedQuery:
    """A query string together with its classification.

    Attributes:
        kind: ``STRUCTURED_ID`` or ``FREE_TEXT``.
        text: Canonical uppercase id for structured ids, otherwise the
            stripped input.
    """

    kind: QueryKind
    text: str

    @property
    def is_structured_id(self) -> bool:
        return self.kind is QueryKind.STRUCTURED_ID

    @property
    def is_blank(self) -> bool:
        return not self.text


def norm(s: str) -> str:
    """Normalize a string for case-insensitive comparison.

    Collapses whitespace, strips, and lowercases.

    Args:
        s: Input string (may be None).

    Returns:
        Normalized lowercase string.
    """
    return re.sub(r"\s+", " ", (s or "").strip().lower())


def classify_query(raw: str | None) -> ClassifiedQuery:
    """Classify a raw query as a structured CVE id or free text.

    Args:
        raw: The user's query string (may be None).

    Returns:
        ``ClassifiedQuery``; a matched id is always uppercased.
    """
    text = (raw or "").strip()
    if CVE_ID_RE.match(text):
        return ClassifiedQuery(QueryKind.STRUCTURED_ID, text.upper())
    return ClassifiedQuery(QueryKind.FREE_TEXT, text)
