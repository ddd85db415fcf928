"""GitHub repository search adapter (proof-of-concept code).

Requires a token: the unauthenticated search quota is too small to be
useful, so the source is skipped entirely without one.
"""

from typing import Any

from ..models import CallStatus, Category, SearchRecord, dedupe_tags
from ..query import ClassifiedQuery
from .base import HttpReply, HttpRequest, SourceAdapter, UnexpectedPayload, format_published, truncate

GITHUB_SEARCH_URL = "https://api.github.com/search/repositories"
POC_QUALIFIERS = "exploit OR poc OR CVE in:name,description,readme"
MAX_TOPIC_TAGS = 3


class GitHubAdapter(SourceAdapter):
    """Search public repositories for exploits and PoCs."""

    name = "github"
    label = "GitHub"
    requires_credential = True

    def build_request(self, query: ClassifiedQuery, limit: int) -> HttpRequest:
        # No exact-id parameter; a quoted phrase is the closest match.
        terms = f'"{query.text}"' if query.is_structured_id else query.text
        params = {
            "q": f"{terms} {POC_QUALIFIERS}",
            "sort": "updated",
            "per_page": str(limit),
        }
        headers = {"Accept": "application/vnd.github+json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return HttpRequest("GET", GITHUB_SEARCH_URL, params=params, headers=headers)

    def classify_reply(self, reply: HttpReply) -> tuple[CallStatus, str | None]:
        if reply.status in (403, 429) and reply.headers.get("x-ratelimit-remaining") == "0":
            reset = reply.headers.get("x-ratelimit-reset")
            return CallStatus.RATE_LIMITED, f"quota exhausted (resets at {reset})" if reset else "quota exhausted"
        return super().classify_reply(reply)

    def extract_items(self, payload: Any, query: ClassifiedQuery) -> list[Any]:
        if not isinstance(payload, dict):
            raise UnexpectedPayload("expected a JSON object")
        items = payload.get("items")
        if items is None:
            return []
        if not isinstance(items, list):
            raise UnexpectedPayload("'items' is not a list")
        return items

    def to_record(self, item: dict[str, Any]) -> SearchRecord | None:
        repo_id = item.get("id")
        url = item.get("html_url")
        name = item.get("full_name") or item.get("name")
        if repo_id is None or not url or not name:
            return None

        topics = item.get("topics") if isinstance(item.get("topics"), list) else []
        return SearchRecord(
            id=f"gh-{repo_id}",
            category=Category.PROOF_OF_CONCEPT,
            title=str(name),
            summary=truncate(str(item.get("description") or "No description"), self.summary_max_length),
            published_date=format_published(item.get("updated_at") or item.get("pushed_at")),
            source_name=self.label,
            detail_url=str(url),
            tags=dedupe_tags(["PoC", *topics[:MAX_TOPIC_TAGS]]),
        )
