"""Upstream source adapters for SecResearch.

Each adapter extends ``SourceAdapter`` and wraps one upstream API.
Adding a new source (e.g., OSV, Exploit-DB) requires only:
1. Create a new file in this package.
2. Subclass ``SourceAdapter``.
3. Register it in ``build_adapters()``.
"""

from ..config import AppConfig, SourceConfig
from ..ratelimit import RateLimiter
from .base import AdapterResult, SourceAdapter
from .github import GitHubAdapter
from .news import NewsFeedAdapter
from .nvd import NvdAdapter
from .vulners import VulnersAdapter

__all__ = [
    "AdapterResult",
    "SourceAdapter",
    "NvdAdapter",
    "GitHubAdapter",
    "VulnersAdapter",
    "NewsFeedAdapter",
    "build_adapters",
    "credential_status",
]


def _adapter_kwargs(section: SourceConfig, config: AppConfig) -> dict:
    return {
        "api_key": section.api_key,
        "limit": section.limit,
        "timeout": section.timeout,
        "summary_max_length": config.search.summary_max_length,
    }


def build_adapters(config: AppConfig, limiter: RateLimiter) -> list[SourceAdapter]:
    """Create the adapters that take part in a fan-out.

    Disabled sources and sources missing a mandatory credential are
    left out.  The limiter is configured with each kept adapter's
    interval (the with-key tier when a key is present).

    Args:
        config: Validated application configuration.
        limiter: Rate limiter shared by all adapters.

    Returns:
        Adapters in dispatch order: NVD, Vulners, GitHub, then news feeds.
    """
    candidates: list[tuple[SourceAdapter, SourceConfig]] = []
    if config.nvd.enabled:
        candidates.append((NvdAdapter(limiter, **_adapter_kwargs(config.nvd, config)), config.nvd))
    if config.vulners.enabled:
        candidates.append((VulnersAdapter(limiter, **_adapter_kwargs(config.vulners, config)), config.vulners))
    if config.github.enabled:
        candidates.append((GitHubAdapter(limiter, **_adapter_kwargs(config.github, config)), config.github))
    if config.news.enabled:
        for feed in config.news.feeds:
            adapter = NewsFeedAdapter(
                limiter,
                feed_name=feed.name,
                feed_url=feed.url,
                **_adapter_kwargs(config.news, config),
            )
            candidates.append((adapter, config.news))

    adapters: list[SourceAdapter] = []
    for adapter, section in candidates:
        if not adapter.configured:
            continue
        limiter.configure(adapter.name, section.interval)
        adapters.append(adapter)
    return adapters


def credential_status(config: AppConfig) -> dict[str, bool]:
    """Whether each credential-bearing source has a key, keyed by label."""
    return {
        NvdAdapter.label: config.nvd.has_credential,
        GitHubAdapter.label: config.github.has_credential,
        VulnersAdapter.label: config.vulners.has_credential,
    }
