"""Vulners Lucene search adapter (commercial vulnerability intelligence).

Vulners answers most errors with HTTP 200 and ``"result": "ERROR"`` in
the body, so the body is inspected before items are extracted.
"""

import json
from typing import Any

from ..models import CallStatus, Category, SearchRecord, dedupe_tags
from ..query import ClassifiedQuery
from .base import (
    HttpReply,
    HttpRequest,
    SourceAdapter,
    UnexpectedPayload,
    coerce_score,
    format_published,
    severity_from_score,
    truncate,
)

VULNERS_SEARCH_URL = "https://vulners.com/api/v3/search/lucene/"
VULNERS_DETAIL_URL = "https://vulners.com/{family}/{doc_id}"
FIELDS = ["id", "title", "description", "cvss", "published", "type", "href", "bulletinFamily", "cvelist"]

_CATEGORY_BY_FAMILY = {
    "exploit": Category.PROOF_OF_CONCEPT,
    "news": Category.NEWS,
    "blog": Category.NEWS,
}


def category_for(doc: dict[str, Any]) -> Category:
    """Pick a record category from a Vulners bulletin family/type."""
    doc_type = str(doc.get("type") or "").lower()
    family = str(doc.get("bulletinFamily") or "").lower()
    if doc_type in ("cve", "nvd"):
        return Category.VULNERABILITY
    return _CATEGORY_BY_FAMILY.get(family, Category.ADVISORY)


class VulnersAdapter(SourceAdapter):
    """Search the Vulners database."""

    name = "vulners"
    label = "Vulners"
    requires_credential = True

    def build_request(self, query: ClassifiedQuery, limit: int) -> HttpRequest:
        if query.is_structured_id:
            lucene = f'id:"{query.text}" OR cvelist:"{query.text}"'
        else:
            lucene = query.text
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["X-Api-Key"] = self.api_key
        return HttpRequest(
            "POST",
            VULNERS_SEARCH_URL,
            json={"query": lucene, "limit": limit, "fields": FIELDS},
            headers=headers,
        )

    def classify_reply(self, reply: HttpReply) -> tuple[CallStatus, str | None]:
        status, detail = super().classify_reply(reply)
        if status is not CallStatus.SUCCESS:
            return status, detail
        try:
            body = json.loads(reply.body.decode("utf-8", errors="replace"))
        except ValueError:
            # Left for decode() to report as an unexpected payload.
            return status, detail
        if isinstance(body, dict) and str(body.get("result") or "").upper() == "ERROR":
            data = body.get("data") if isinstance(body.get("data"), dict) else {}
            message = str(data.get("error") or "unknown error")
            if "key" in message.lower() or "auth" in message.lower():
                return CallStatus.AUTH_ERROR, message
            return CallStatus.NETWORK_ERROR, message
        return status, detail

    def extract_items(self, payload: Any, query: ClassifiedQuery) -> list[Any]:
        if not isinstance(payload, dict):
            raise UnexpectedPayload("expected a JSON object")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise UnexpectedPayload("missing 'data' object")
        docs = data.get("search") or []
        if not isinstance(docs, list):
            raise UnexpectedPayload("'data.search' is not a list")
        return [d.get("_source") for d in docs if isinstance(d, dict)]

    def to_record(self, item: dict[str, Any]) -> SearchRecord | None:
        doc_id = str(item.get("id") or "").strip()
        if not doc_id:
            return None

        cvss = item.get("cvss") if isinstance(item.get("cvss"), dict) else {}
        score = coerce_score(cvss.get("score"))
        if score is not None and score <= 0:
            score = None

        family = str(item.get("bulletinFamily") or "")
        doc_type = str(item.get("type") or "")
        cvelist = item.get("cvelist") if isinstance(item.get("cvelist"), list) else []
        detail_url = item.get("href") or VULNERS_DETAIL_URL.format(family=doc_type or "cve", doc_id=doc_id)
        return SearchRecord(
            id=f"vulners-{doc_id}",
            category=category_for(item),
            title=str(item.get("title") or doc_id),
            summary=truncate(str(item.get("description") or "No description"), self.summary_max_length),
            severity_label=severity_from_score(score) if score is not None else None,
            severity_score=score,
            published_date=format_published(item.get("published")),
            source_name=self.label,
            detail_url=str(detail_url),
            tags=dedupe_tags([family, doc_type.upper(), *cvelist]),
        )
