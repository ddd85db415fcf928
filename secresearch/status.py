"""Upstream reachability probe.

Sends each source a one-result query through a plain ``requests``
session and reports whether it answered.  Used by ``GET /sources/status``
and ``secresearch status``; searches never go through here.
"""

import datetime as dt
import logging
import time
from typing import Any

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import AppConfig
from .query import classify_query
from .ratelimit import RateLimiter
from .sources import GitHubAdapter, NewsFeedAdapter, NvdAdapter, SourceAdapter, VulnersAdapter
from .sources.base import USER_AGENT, HttpRequest

logger = logging.getLogger(__name__)

PROBE_QUERY = "test"
STATUS_HTTP_TIMEOUT = (5, 15)  # (connect, read)


def requests_session() -> requests.Session:
    """Create a requests session with the client's identifying headers.

    Returns:
        Configured ``requests.Session``.
    """
    s = requests.Session()
    s.headers.update(
        {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        }
    )
    return s


@retry(
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    reraise=True,
)
def send_probe(session: requests.Session, request: HttpRequest) -> requests.Response:
    """Send one probe request, retrying connection failures.

    Args:
        session: Requests session.
        request: Request built by the source's adapter.

    Returns:
        The upstream response, whatever its status.
    """
    return session.request(
        request.method,
        request.url,
        params=request.params,
        json=request.json,
        headers=request.headers,
        timeout=STATUS_HTTP_TIMEOUT,
    )


def probe_source(session: requests.Session, adapter: SourceAdapter, enabled: bool = True) -> dict[str, Any]:
    """Probe one source.

    Args:
        session: Requests session.
        adapter: Adapter whose request shape and credential are used.
        enabled: Whether the source is enabled in configuration.

    Returns:
        ``{source, status, responseTime}`` where status is ``online``
        (2xx or 404), ``offline`` (any other status), ``no-key``,
        ``disabled`` or ``error``.
    """
    entry: dict[str, Any] = {"source": adapter.label, "status": "online", "responseTime": 0}
    if not enabled:
        entry["status"] = "disabled"
        return entry
    if not adapter.configured:
        entry["status"] = "no-key"
        return entry

    request = adapter.build_request(classify_query(PROBE_QUERY), 1)
    started = time.monotonic()
    try:
        resp = send_probe(session, request)
    except requests.RequestException as e:
        logger.warning("%s: status probe failed: %s", adapter.label, e)
        entry["status"] = "error"
        entry["error"] = str(e)
        return entry
    entry["responseTime"] = int((time.monotonic() - started) * 1000)

    if 200 <= resp.status_code < 300 or resp.status_code == 404:
        return entry
    entry["status"] = "offline"
    entry["httpStatus"] = resp.status_code
    return entry


def _probe_targets(config: AppConfig) -> list[tuple[SourceAdapter, bool]]:
    limiter = RateLimiter()
    targets: list[tuple[SourceAdapter, bool]] = [
        (NvdAdapter(limiter, api_key=config.nvd.api_key), config.nvd.enabled),
        (GitHubAdapter(limiter, api_key=config.github.api_key), config.github.enabled),
        (VulnersAdapter(limiter, api_key=config.vulners.api_key), config.vulners.enabled),
    ]
    for feed in config.news.feeds:
        targets.append((NewsFeedAdapter(limiter, feed_name=feed.name, feed_url=feed.url), config.news.enabled))
    return targets


def check_sources(config: AppConfig, session: requests.Session | None = None) -> dict[str, Any]:
    """Probe every known source and summarize configuration.

    Args:
        config: Application configuration.
        session: Requests session (a new one by default).

    Returns:
        Status document with ``sources``, ``configuration`` (which
        credentials are set) and ``capabilities``.
    """
    session = session or requests_session()
    sources = [probe_source(session, adapter, enabled) for adapter, enabled in _probe_targets(config)]
    creds = config.credentials()
    usable = [s for s in sources if s["status"] not in ("disabled", "no-key")]
    return {
        "status": "success",
        "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
        "sources": sources,
        "configuration": {
            "nvdApiKey": creds["nvd"],
            "githubToken": creds["github"],
            "vulnersApiKey": creds["vulners"],
        },
        "capabilities": {
            "realTimeSearch": True,
            "multiSource": len(usable) > 1,
            "rateLimited": True,
        },
    }
