"""Unit tests for secresearch.models — normalized record shapes."""

import pytest
from pydantic import ValidationError

from secresearch.models import (
    MAX_TAGS,
    CallStatus,
    Category,
    SearchRecord,
    Severity,
    SourceCallOutcome,
    dedupe_tags,
)


def _record(**overrides) -> SearchRecord:
    fields = {
        "id": "CVE-2024-4577",
        "category": Category.VULNERABILITY,
        "title": "CVE-2024-4577: PHP-CGI argument injection",
        "summary": "In PHP versions 8.1.* before 8.1.29 ...",
        "severity_label": Severity.CRITICAL,
        "severity_score": 9.8,
        "published_date": "2024-06-09",
        "source_name": "NVD",
        "detail_url": "https://nvd.nist.gov/vuln/detail/CVE-2024-4577",
        "tags": ["CVE", "php"],
    }
    fields.update(overrides)
    return SearchRecord(**fields)


# ── dedupe_tags ──────────────────────────────────────────────────────────────


class TestDedupeTags:
    def test_first_occurrence_wins(self):
        assert dedupe_tags(["a", "b", "a", "c"]) == ["a", "b", "c"]

    def test_cap(self):
        assert len(dedupe_tags([str(i) for i in range(20)])) == MAX_TAGS

    def test_drops_blank_and_non_strings(self):
        assert dedupe_tags(["", "  ", None, "x", 3]) == ["x"]

    def test_strips(self):
        assert dedupe_tags([" php ", "php"]) == ["php"]


# ── SearchRecord ─────────────────────────────────────────────────────────────


class TestSearchRecord:
    def test_valid(self):
        r = _record()
        assert r.severity_label is Severity.CRITICAL
        assert r.severity_score == 9.8

    def test_tags_capped_and_deduped(self):
        r = _record(tags=["CVE", "CVE", "a", "b", "c", "d", "e"])
        assert r.tags == ["CVE", "a", "b", "c", "d"]

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            _record(id="")

    def test_empty_title_rejected(self):
        with pytest.raises(ValidationError):
            _record(title="")

    def test_relative_url_rejected(self):
        with pytest.raises(ValidationError):
            _record(detail_url="/vuln/detail/CVE-2024-4577")

    @pytest.mark.parametrize("score", [-0.1, 10.1])
    def test_score_out_of_range(self, score):
        with pytest.raises(ValidationError):
            _record(severity_score=score)

    def test_score_without_label_rejected(self):
        with pytest.raises(ValidationError):
            _record(severity_label=None, severity_score=7.5)

    def test_no_severity(self):
        r = _record(severity_label=None, severity_score=None)
        assert r.severity_label is None

    def test_frozen(self):
        r = _record()
        with pytest.raises(ValidationError):
            r.title = "changed"

    def test_to_dict_camel_case(self):
        d = _record().to_dict()
        assert d["severityLabel"] == "Critical"
        assert d["severityScore"] == 9.8
        assert d["publishedDate"] == "2024-06-09"
        assert d["sourceName"] == "NVD"
        assert d["detailUrl"].startswith("https://")
        assert d["category"] == "VulnerabilityRecord"

    def test_populate_by_alias(self):
        r = SearchRecord.model_validate(
            {
                "id": "gh-1",
                "category": "ProofOfConcept",
                "title": "x/poc",
                "sourceName": "GitHub",
                "detailUrl": "https://github.com/x/poc",
            }
        )
        assert r.category is Category.PROOF_OF_CONCEPT
        assert r.source_name == "GitHub"


# ── SourceCallOutcome ────────────────────────────────────────────────────────


class TestSourceCallOutcome:
    @pytest.mark.parametrize(
        "status, ok",
        [
            (CallStatus.SUCCESS, True),
            (CallStatus.EMPTY_RESULT, True),
            (CallStatus.RATE_LIMITED, False),
            (CallStatus.AUTH_ERROR, False),
            (CallStatus.NETWORK_ERROR, False),
            (CallStatus.TIMEOUT, False),
        ],
    )
    def test_ok(self, status, ok):
        assert SourceCallOutcome(source_name="NVD", status=status).ok is ok

    def test_negative_counts_rejected(self):
        with pytest.raises(ValidationError):
            SourceCallOutcome(source_name="NVD", status=CallStatus.SUCCESS, record_count=-1)

    def test_to_dict(self):
        o = SourceCallOutcome(
            source_name="GitHub",
            status=CallStatus.AUTH_ERROR,
            elapsed_millis=12,
            error_detail="HTTP 401",
        )
        assert o.to_dict() == {
            "sourceName": "GitHub",
            "status": "AuthError",
            "elapsedMillis": 12,
            "recordCount": 0,
            "errorDetail": "HTTP 401",
        }
