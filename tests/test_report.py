"""Unit tests for secresearch.report — Jinja2 Markdown reports."""

from pathlib import Path

from secresearch.aggregator import SearchResponse
from secresearch.models import CallStatus, Category, SearchRecord, Severity, SourceCallOutcome
from secresearch.report import md_cell, render_markdown_report, write_markdown_report


def _response() -> SearchResponse:
    return SearchResponse(
        query="CVE-2024-4577",
        records=[
            SearchRecord(
                id="CVE-2024-4577",
                category=Category.VULNERABILITY,
                title="CVE-2024-4577: PHP-CGI | argument injection",
                severity_label=Severity.CRITICAL,
                severity_score=9.8,
                published_date="2024-06-09",
                source_name="NVD",
                detail_url="https://nvd.nist.gov/vuln/detail/CVE-2024-4577",
            ),
            SearchRecord(
                id="gh-42",
                category=Category.PROOF_OF_CONCEPT,
                title="someone/poc",
                source_name="GitHub",
                detail_url="https://github.com/someone/poc",
            ),
        ],
        outcomes=[
            SourceCallOutcome(source_name="NVD", status=CallStatus.SUCCESS, record_count=1, elapsed_millis=120),
            SourceCallOutcome(source_name="Vulners", status=CallStatus.AUTH_ERROR, error_detail="Wrong API key"),
        ],
        sources={"NVD": 1, "GitHub": 1, "Vulners": 0},
        credentials_active={"NVD": False, "GitHub": True, "Vulners": True},
        total_sources=3,
        duration_ms=250,
    )


class TestMdCell:
    def test_escapes_pipes(self):
        assert md_cell("a|b") == "a\\|b"

    def test_collapses_newlines(self):
        assert md_cell("a\n  b") == "a b"


class TestRenderMarkdownReport:
    def test_contents(self):
        md = render_markdown_report(_response())
        assert md.startswith("# SecResearch Report: CVE-2024-4577")
        assert "Results: **2**" in md
        assert "| NVD | Success | 1 | 120 |" in md
        assert "| Vulners | AuthError | 0 | 0 | Wrong API key |" in md
        assert "[CVE-2024-4577](https://nvd.nist.gov/vuln/detail/CVE-2024-4577)" in md
        assert "Critical (9.8)" in md
        assert "PHP-CGI \\| argument injection" in md
        assert "- GitHub: configured" in md
        assert "- NVD: missing" in md

    def test_no_severity_or_date(self):
        md = render_markdown_report(_response())
        gh_line = next(line for line in md.splitlines() if "gh-42" in line)
        assert "| - | - | GitHub |" in gh_line

    def test_error_detail_kept_in_one_cell(self):
        response = _response()
        response.outcomes = [
            SourceCallOutcome(
                source_name="Feed | Mirror",
                status=CallStatus.NETWORK_ERROR,
                error_detail="HTTP 502\nupstream | proxy",
            )
        ]
        md = render_markdown_report(response)
        assert "| Feed \\| Mirror | NetworkError | 0 | 0 | HTTP 502 upstream \\| proxy |" in md

    def test_empty(self):
        md = render_markdown_report(SearchResponse(query="nothing"))
        assert "_No results._" in md


class TestWriteMarkdownReport:
    def test_writes_atomically(self, tmp_path: Path):
        path = tmp_path / "reports" / "search.md"
        write_markdown_report(path, _response())
        assert path.exists()
        assert "CVE-2024-4577" in path.read_text(encoding="utf-8")
        assert not path.with_suffix(".md.tmp").exists()
