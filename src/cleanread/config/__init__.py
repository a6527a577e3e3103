"""Configuration models for the cleanread application shell."""

from .config import (
    CacheConfig,
    Config,
    ExtractionDefaults,
    FetcherConfig,
    MonitoringConfig,
    ReaderConfig,
    SiteRuleConfig,
    find_config_file,
)

__all__ = [
    "CacheConfig",
    "Config",
    "ExtractionDefaults",
    "FetcherConfig",
    "MonitoringConfig",
    "ReaderConfig",
    "SiteRuleConfig",
    "find_config_file",
]
