"""NVD CVE API 2.0 adapter (vulnerability database).

Works anonymously at the public rate or faster with an ``apiKey``.
CVE ids are looked up exactly via ``cveId``; anything else goes to
``keywordSearch``.
"""

from typing import Any

from ..models import Category, SearchRecord, Severity, dedupe_tags
from ..query import ClassifiedQuery
from .base import (
    HttpRequest,
    SourceAdapter,
    UnexpectedPayload,
    coerce_score,
    format_published,
    normalize_severity_label,
    severity_from_score,
    truncate,
)

NVD_API_URL = "https://services.nvd.nist.gov/rest/json/cves/2.0"
NVD_DETAIL_URL = "https://nvd.nist.gov/vuln/detail/{cve_id}"

TITLE_DESCRIPTION_LENGTH = 100


def _primary_metric(metric_list: Any) -> dict[str, Any]:
    """Prefer the ``Primary`` metric, else the first one."""
    if not isinstance(metric_list, list) or not metric_list:
        return {}
    for m in metric_list:
        if isinstance(m, dict) and m.get("type") == "Primary":
            return m
    first = metric_list[0]
    return first if isinstance(first, dict) else {}


def extract_cvss(cve: dict[str, Any]) -> tuple[float | None, Severity | None]:
    """Extract the best CVSS score and label from an NVD CVE object.

    Tries CVSS v3.1 → v3.0 → v2 in order.  The v2 severity lives on the
    metric itself rather than on ``cvssData``.

    Args:
        cve: The ``cve`` object of one NVD vulnerability.

    Returns:
        Tuple of (base_score, severity).  Both None if no CVSS data.
    """
    metrics = cve.get("metrics") or {}
    if not isinstance(metrics, dict):
        return None, None

    for key in ("cvssMetricV31", "cvssMetricV30", "cvssMetricV2"):
        metric = _primary_metric(metrics.get(key))
        data = metric.get("cvssData") or {}
        score = coerce_score(data.get("baseScore"))
        if score is None:
            continue
        label = normalize_severity_label(data.get("baseSeverity") or metric.get("baseSeverity"))
        return score, label
    return None, None


def pick_description(cve: dict[str, Any]) -> str:
    """Select the English description, falling back to the first one."""
    descs = cve.get("descriptions") or []
    if isinstance(descs, list):
        for d in descs:
            if isinstance(d, dict) and (d.get("lang") or "").lower().startswith("en") and d.get("value"):
                return str(d["value"])
        for d in descs:
            if isinstance(d, dict) and d.get("value"):
                return str(d["value"])
    return ""


def product_tags(cve: dict[str, Any]) -> list[str]:
    """Vendor and product names from CPE match criteria."""
    tags: list[str] = []
    for config in cve.get("configurations") or []:
        for node in (config or {}).get("nodes") or []:
            for match in (node or {}).get("cpeMatch") or []:
                parts = str((match or {}).get("criteria") or "").split(":")
                if len(parts) > 4:
                    tags.extend(p for p in (parts[3], parts[4]) if p and p not in ("*", "-"))
    return tags


def weakness_tags(cve: dict[str, Any]) -> list[str]:
    """CWE identifiers, excluding the NVD placeholders."""
    cwe_ids: list[str] = []
    for weakness in cve.get("weaknesses") or []:
        for desc in (weakness or {}).get("description") or []:
            val = str((desc or {}).get("value") or "")
            if val.startswith("CWE-") and val not in ("CWE-noinfo", "CWE-Other"):
                cwe_ids.append(val)
    return cwe_ids


class NvdAdapter(SourceAdapter):
    """Search the NVD CVE API."""

    name = "nvd"
    label = "NVD"
    requires_credential = False

    def build_request(self, query: ClassifiedQuery, limit: int) -> HttpRequest:
        params = {"resultsPerPage": str(limit), "startIndex": "0"}
        if query.is_structured_id:
            params["cveId"] = query.text
        else:
            params["keywordSearch"] = query.text

        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apiKey"] = self.api_key
        return HttpRequest("GET", NVD_API_URL, params=params, headers=headers)

    def extract_items(self, payload: Any, query: ClassifiedQuery) -> list[Any]:
        if not isinstance(payload, dict):
            raise UnexpectedPayload("expected a JSON object")
        vulns = payload.get("vulnerabilities")
        if vulns is None:
            return []
        if not isinstance(vulns, list):
            raise UnexpectedPayload("'vulnerabilities' is not a list")
        return [v.get("cve") for v in vulns if isinstance(v, dict)]

    def to_record(self, item: dict[str, Any]) -> SearchRecord | None:
        cve_id = str(item.get("id") or "").strip().upper()
        if not cve_id.startswith("CVE-") or item.get("vulnStatus") == "Rejected":
            return None

        description = pick_description(item) or "No description available"
        score, label = extract_cvss(item)
        if score is None:
            label = Severity.UNKNOWN
        elif label is None and score > 0:
            label = severity_from_score(score)

        return SearchRecord(
            id=cve_id,
            category=Category.VULNERABILITY,
            title=f"{cve_id}: {truncate(description, TITLE_DESCRIPTION_LENGTH)}",
            summary=truncate(description, self.summary_max_length),
            severity_label=label,
            severity_score=score,
            published_date=format_published(item.get("published")),
            source_name=self.label,
            detail_url=NVD_DETAIL_URL.format(cve_id=cve_id),
            tags=dedupe_tags(["CVE", *product_tags(item), *weakness_tags(item)]),
        )
