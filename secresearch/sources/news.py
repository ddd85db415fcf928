"""RSS/Atom security news adapter.

One adapter instance per configured feed.  Feeds have no search API,
so entries are fetched whole and matched against the query text
locally.  With no feeds configured the news source stays inert.
"""

import hashlib
import re
from typing import Any

import feedparser

from ..models import Category, SearchRecord, dedupe_tags
from ..query import ClassifiedQuery, norm
from ..ratelimit import RateLimiter
from .base import HttpReply, HttpRequest, SourceAdapter, UnexpectedPayload, format_published, truncate

_HTML_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(value: Any) -> str:
    """Convert potentially HTML-rich text to readable plain text."""
    if not value:
        return ""
    text = _HTML_TAG_RE.sub(" ", str(value))
    return _WHITESPACE_RE.sub(" ", text).strip()


def entry_summary(entry: dict[str, Any]) -> str:
    summary = entry.get("summary") or entry.get("description") or ""
    if not summary and entry.get("content"):
        summary = entry["content"][0].get("value", "")
    return clean_text(summary)


class NewsFeedAdapter(SourceAdapter):
    """Match a query against the entries of one news feed.

    Args:
        limiter: Shared rate limiter.
        feed_name: Human-readable feed name, used as the source label.
        feed_url: RSS or Atom URL.
    """

    requires_credential = False

    def __init__(self, limiter: RateLimiter, feed_name: str, feed_url: str, **kwargs: Any) -> None:
        super().__init__(limiter, **kwargs)
        self.name = f"news:{feed_name.lower()}"
        self.label = feed_name
        self.feed_url = feed_url

    def build_request(self, query: ClassifiedQuery, limit: int) -> HttpRequest:
        headers = {"Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8"}
        return HttpRequest("GET", self.feed_url, headers=headers)

    def decode(self, reply: HttpReply) -> Any:
        feed = feedparser.parse(reply.body)
        if feed.bozo and not feed.entries:
            raise UnexpectedPayload(f"unparseable feed ({feed.get('bozo_exception')})")
        return feed

    def extract_items(self, payload: Any, query: ClassifiedQuery) -> list[Any]:
        needle = norm(query.text)
        matched = []
        for entry in payload.entries:
            haystack = norm(f"{clean_text(entry.get('title'))} {entry_summary(entry)}")
            if needle in haystack:
                matched.append(entry)
        return matched

    def to_record(self, item: dict[str, Any]) -> SearchRecord | None:
        link = str(item.get("link") or item.get("id") or "")
        title = clean_text(item.get("title"))
        if not link or not title:
            return None

        terms = [t.get("term") for t in item.get("tags") or [] if isinstance(t, dict)]
        return SearchRecord(
            id=f"news-{hashlib.sha256(link.encode()).hexdigest()[:16]}",
            category=Category.NEWS,
            title=title,
            summary=truncate(entry_summary(item), self.summary_max_length),
            published_date=format_published(item.get("published") or item.get("updated")),
            source_name=self.label,
            detail_url=link,
            tags=dedupe_tags(["News", *terms]),
        )
