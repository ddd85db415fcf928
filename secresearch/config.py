"""Configuration models using Pydantic.

Source credentials, limits and rate-limit intervals are validated once
at startup from ``secresearch.yaml`` (or JSON) and the environment.
"""

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from .ratelimit import RateTier

# Source section name -> environment variables consulted for its credential.
CREDENTIAL_ENV_VARS: dict[str, tuple[str, ...]] = {
    "nvd": ("NVD_API_KEY",),
    "github": ("GITHUB_TOKEN", "GH_TOKEN"),
    "vulners": ("VULNERS_API_KEY",),
}


class SourceConfig(BaseModel):
    """Settings shared by every upstream source.

    Attributes:
        enabled: Whether the source takes part in searches at all.
        api_key: Optional credential.  ``$NAME`` is resolved from the
            environment.
        limit: Result-count limit sent upstream.
        timeout: Per-call deadline in seconds.
        interval_with_key: Minimum seconds between calls with a key.
        interval_without_key: Minimum seconds between anonymous calls.
    """

    enabled: bool = True
    api_key: str | None = None
    limit: int = Field(default=20, ge=1, le=100)
    timeout: float = Field(default=10.0, gt=0.0, le=60.0)
    interval_with_key: float = Field(default=1.0, ge=0.0)
    interval_without_key: float = Field(default=10.0, ge=0.0)

    @field_validator("api_key", mode="before")
    @classmethod
    def _resolve_key(cls, v: Any) -> str | None:
        if v is None:
            return None
        value = _resolve_env(str(v).strip())
        return value.strip() if value and value.strip() else None

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    @property
    def rate_tier(self) -> RateTier:
        return RateTier(self.interval_with_key, self.interval_without_key)

    @property
    def interval(self) -> float:
        return self.rate_tier.interval(self.has_credential)


class FeedConfig(BaseModel):
    """A single RSS/Atom feed for the news source."""

    name: str = Field(min_length=1)
    url: str = Field(min_length=1)


class NewsSourceConfig(SourceConfig):
    """News source settings.  Inert until at least one feed is listed.

    Example YAML::

        news:
          feeds:
            - name: BleepingComputer
              url: https://www.bleepingcomputer.com/feed/
    """

    limit: int = Field(default=10, ge=1, le=100)
    interval_with_key: float = Field(default=1.0, ge=0.0)
    interval_without_key: float = Field(default=1.0, ge=0.0)
    feeds: list[FeedConfig] = Field(default_factory=list)

    @field_validator("feeds")
    @classmethod
    def _unique_feed_names(cls, v: list[FeedConfig]) -> list[FeedConfig]:
        """Feed names key the rate limiter and ``meta.sources``, so they must differ ignoring case."""
        seen: set[str] = set()
        for feed in v:
            key = feed.name.strip().lower()
            if key in seen:
                raise ValueError(f"duplicate news feed name: {feed.name!r}")
            seen.add(key)
        return v


class SearchOptions(BaseModel):
    """Options for result shaping and history.

    Attributes:
        summary_max_length: Summaries longer than this are truncated.
        history_size: Number of recent queries kept in memory.
    """

    summary_max_length: int = Field(default=300, ge=20, le=5000)
    history_size: int = Field(default=10, ge=0, le=1000)


def _nvd_defaults() -> SourceConfig:
    # NVD public quota is 5 requests / 30s, 50 / 30s with a key.
    return SourceConfig(limit=20, interval_with_key=0.6, interval_without_key=6.0)


def _github_defaults() -> SourceConfig:
    return SourceConfig(limit=15, interval_with_key=2.0, interval_without_key=20.0)


def _vulners_defaults() -> SourceConfig:
    return SourceConfig(limit=20, interval_with_key=0.5, interval_without_key=5.0)


class AppConfig(BaseModel):
    """Validated application configuration.

    Example YAML::

        nvd:
          api_key: $NVD_API_KEY
        github:
          api_key: $GITHUB_TOKEN
          limit: 15
        vulners:
          enabled: false
        search:
          summary_max_length: 300
    """

    nvd: SourceConfig = Field(default_factory=_nvd_defaults)
    github: SourceConfig = Field(default_factory=_github_defaults)
    vulners: SourceConfig = Field(default_factory=_vulners_defaults)
    news: NewsSourceConfig = Field(default_factory=NewsSourceConfig)
    search: SearchOptions = Field(default_factory=SearchOptions)

    @field_validator("nvd", "github", "vulners", mode="before")
    @classmethod
    def _merge_source_defaults(cls, v: Any, info: Any) -> Any:
        """Overlay a partial YAML section on the per-source defaults."""
        if not isinstance(v, dict):
            return v
        defaults = {
            "nvd": _nvd_defaults,
            "github": _github_defaults,
            "vulners": _vulners_defaults,
        }[info.field_name]()
        return {**defaults.model_dump(), **v}

    def credentials(self) -> dict[str, bool]:
        """Whether each credential-bearing source has a key configured."""
        return {name: getattr(self, name).has_credential for name in CREDENTIAL_ENV_VARS}


def apply_env_credentials(config: AppConfig) -> AppConfig:
    """Fill missing API keys from the conventional environment variables.

    Args:
        config: Loaded configuration.

    Returns:
        A copy of ``config`` with credentials filled in where available.
    """
    updates: dict[str, SourceConfig] = {}
    for name, env_vars in CREDENTIAL_ENV_VARS.items():
        section: SourceConfig = getattr(config, name)
        if section.api_key:
            continue
        for var in env_vars:
            value = (os.environ.get(var) or "").strip()
            if value:
                updates[name] = section.model_copy(update={"api_key": value})
                break
    return config.model_copy(update=updates) if updates else config


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML or JSON file plus the environment.

    Args:
        path: Config file, or ``None`` for defaults.

    Returns:
        Validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: if ``path`` is given but doesn't exist.
        pydantic.ValidationError: if content fails validation.
    """
    raw: Any = {}
    if path is not None:
        suffix = path.suffix.lower()
        content = path.read_text(encoding="utf-8")
        if suffix == ".json":
            raw = json.loads(content)
        else:
            raw = yaml.safe_load(content) or {}

    return apply_env_credentials(AppConfig.model_validate(raw))


def find_config() -> Path | None:
    """Find the config file, preferring YAML over JSON.

    Returns:
        Path of the first existing config file, or ``None``.
    """
    for name in ("secresearch.yaml", "secresearch.yml", "secresearch.json"):
        if Path(name).exists():
            return Path(name)
    return None


def _resolve_env(value: str) -> str | None:
    """Resolve ``$ENV_VAR`` references in a string.

    If the value starts with ``$``, look it up in ``os.environ``.
    Otherwise return as-is.  Returns ``None`` if the env var is unset.
    """
    if value.startswith("$"):
        return os.environ.get(value[1:])
    return value if value else None
