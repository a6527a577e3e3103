"""
Configuration management for cleanread using Pydantic.

The extraction core never reads this module: the application shell (container,
CLI) turns a ``Config`` into ``ExtractionOptions`` values and constructor
arguments.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cleanread.protocols import ContentKind, ExtractionOptions, SiteRule

# --- Setup Logging ---
log = logging.getLogger(__name__)

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# --- Nested Configuration Models ---


class ReaderConfig(BaseModel):
    """Remote document-reading service."""

    enabled: bool = Field(default=True, description="Register the remote reader strategy.")
    host: str = Field(default="r.jina.ai", description="Reader host; requests go to https://<host>/<url>.")
    timeout_seconds: float = Field(default=10.0, gt=0, description="Per-request timeout in seconds.")
    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; cleanread/0.1)",
        description="User-Agent sent to the reader service.",
    )

    @field_validator("host")
    @classmethod
    def strip_scheme(cls, v: str) -> str:
        """Accept ``https://host/`` and keep only the host part."""
        v = v.strip()
        for prefix in ("https://", "http://"):
            if v.startswith(prefix):
                v = v[len(prefix) :]
        v = v.rstrip("/")
        if not v:
            raise ValueError("reader host cannot be empty")
        return v


class FetcherConfig(BaseModel):
    """Plain page fetcher used by the structural strategy for URL inputs."""

    enabled: bool = Field(default=True, description="Let the structural strategy fetch URLs itself.")
    user_agent: str = Field(default=DESKTOP_USER_AGENT, description="Desktop browser User-Agent.")
    accept_language: str = Field(default="en-US,en;q=0.9", description="Accept-Language header.")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds.")


class CacheConfig(BaseModel):
    """Result cache backing."""

    backend: Literal["memory", "sqlite", "tiered", "none"] = Field(default="memory")
    max_size: int = Field(default=200, ge=1, description="Maximum entries held in memory.")
    default_ttl_seconds: float = Field(default=3600.0, gt=0, description="TTL when a write does not pass one.")
    db_path: Path = Field(
        default_factory=lambda: Path.home() / ".cleanread" / "cache.db",
        description="SQLite file for the persistent layer.",
    )


class SiteRuleConfig(BaseModel):
    """Declarative part of a site rule; hooks can only be attached in code."""

    content_selector: Optional[str] = None
    remove_selectors: List[str] = Field(default_factory=list)


class ExtractionDefaults(BaseModel):
    """Defaults for every ``ExtractionOptions`` field."""

    min_content_length: int = Field(default=500, ge=0)
    preserve_classes: List[str] = Field(default_factory=list)
    remove_recommendations: bool = True
    aggressive_noise_removal: bool = False
    preserve_comments: bool = False
    preserve_related: bool = False
    custom_selectors: List[str] = Field(default_factory=list)
    site_rules: Dict[str, SiteRuleConfig] = Field(default_factory=dict)
    cache_enabled: bool = True
    cache_ttl_seconds: float = Field(default=3600.0, gt=0)
    max_concurrency: int = Field(default=5, ge=1)
    output_kind: Literal["markdown", "text", "html"] = "markdown"

    @field_validator("site_rules")
    @classmethod
    def lowercase_hosts(cls, v: Dict[str, SiteRuleConfig]) -> Dict[str, SiteRuleConfig]:
        return {host.lower(): rule for host, rule in v.items()}

    def to_options(self, **overrides: Any) -> ExtractionOptions:
        """Build an ``ExtractionOptions`` value, applying keyword overrides last."""
        options = ExtractionOptions(
            min_content_length=self.min_content_length,
            preserve_classes=frozenset(self.preserve_classes),
            remove_recommendations=self.remove_recommendations,
            aggressive_noise_removal=self.aggressive_noise_removal,
            preserve_comments=self.preserve_comments,
            preserve_related=self.preserve_related,
            custom_selectors=tuple(self.custom_selectors),
            site_rules={
                host: SiteRule(content_selector=rule.content_selector, remove_selectors=tuple(rule.remove_selectors))
                for host, rule in self.site_rules.items()
            },
            cache_enabled=self.cache_enabled,
            cache_ttl=self.cache_ttl_seconds,
            max_concurrency=self.max_concurrency,
            output_kind=OUTPUT_KINDS[self.output_kind],
        )
        return options.with_updates(**overrides) if overrides else options


OUTPUT_KINDS: Dict[str, ContentKind] = {
    "markdown": ContentKind.STRUCTURED_DOCUMENT,
    "text": ContentKind.PLAIN_TEXT,
    "html": ContentKind.RAW_MARKUP,
}


class MonitoringConfig(BaseModel):
    """Configuration for logging output."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")

    @field_validator("log_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "cleanread"
    reader: ReaderConfig = Field(default_factory=ReaderConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    extraction: ExtractionDefaults = Field(default_factory=ExtractionDefaults)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="CLEANREAD_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file(directory: Path | None = None) -> Path | None:
    current_dir = directory or Path.cwd()
    for name in ("cleanread.yaml", "cleanread.yml", "config.yaml", "config.yml"):
        path = current_dir / name
        if path.is_file():
            return path
    return None
