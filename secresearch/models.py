"""Normalized result models using Pydantic.

Every upstream response is coerced into these strict shapes before it
leaves a source adapter.  Records are immutable once built.
"""

import enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

MAX_TAGS = 5
SUMMARY_MAX_LENGTH = 300


class Category(str, enum.Enum):
    VULNERABILITY = "VulnerabilityRecord"
    PROOF_OF_CONCEPT = "ProofOfConcept"
    NEWS = "NewsItem"
    ADVISORY = "Advisory"


class Severity(str, enum.Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    UNKNOWN = "Unknown"


class CallStatus(str, enum.Enum):
    """Outcome of one adapter invocation.

    ``EMPTY_RESULT`` is not an error; the source simply had no matches.
    """

    SUCCESS = "Success"
    EMPTY_RESULT = "EmptyResult"
    RATE_LIMITED = "RateLimited"
    AUTH_ERROR = "AuthError"
    NETWORK_ERROR = "NetworkError"
    TIMEOUT = "Timeout"


def dedupe_tags(tags: list[str], limit: int = MAX_TAGS) -> list[str]:
    """Strip, drop blanks and duplicates (first occurrence wins), then cap.

    Args:
        tags: Candidate tag strings in priority order.
        limit: Maximum number of tags to keep.

    Returns:
        Ordered, de-duplicated list of at most ``limit`` tags.
    """
    out: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        tag = tag.strip()
        if tag and tag not in out:
            out.append(tag)
    return out[:limit]


class SearchRecord(BaseModel):
    """One normalized search result.

    Attributes:
        id: Unique within a result set; prefixed for non-authoritative
            sources (``gh-``, ``vulners-``, ``news-``).
        category: Kind of record.
        title: Display title.
        summary: Description, already truncated by the adapter.
        severity_label: Four-level scale, or ``None`` when the source has
            no severity for this record.
        severity_score: 0.0–10.0 score, or ``None``.
        published_date: ``YYYY-MM-DD`` derived from a source timestamp,
            or ``""`` when the source supplied none.
        source_name: Human-readable provider label.
        detail_url: Absolute URL of the canonical record.
        tags: At most ``MAX_TAGS`` distinct tags.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    id: str = Field(min_length=1)
    category: Category
    title: str = Field(min_length=1)
    summary: str = ""
    severity_label: Severity | None = None
    severity_score: float | None = Field(default=None, ge=0.0, le=10.0)
    published_date: str = ""
    source_name: str = Field(min_length=1)
    detail_url: str = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="after")
    @classmethod
    def _cap_tags(cls, v: list[str]) -> list[str]:
        return dedupe_tags(v)

    @field_validator("detail_url")
    @classmethod
    def _absolute_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"detail URL must be absolute, got {v!r}")
        return v

    @model_validator(mode="after")
    def _score_needs_label(self) -> "SearchRecord":
        if self.severity_label is None and self.severity_score:
            raise ValueError("severity_score requires a severity_label")
        return self

    def to_dict(self) -> dict:
        """Serialize with camelCase keys for the HTTP payload."""
        return self.model_dump(mode="json", by_alias=True)


class SourceCallOutcome(BaseModel):
    """Diagnostic summary of a single adapter call.

    Attributes:
        source_name: Provider label.
        status: How the call ended.
        elapsed_millis: Wall time of the call, rate-limit wait excluded.
        record_count: Records contributed.
        error_detail: Human-readable reason for non-success outcomes.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    source_name: str
    status: CallStatus
    elapsed_millis: int = Field(default=0, ge=0)
    record_count: int = Field(default=0, ge=0)
    error_detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (CallStatus.SUCCESS, CallStatus.EMPTY_RESULT)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
