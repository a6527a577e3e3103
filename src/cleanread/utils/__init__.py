"""Utility helpers for cleanread."""

from .urls import clean_tracking_params, hostname_of, is_http_url, normalize_url, resolve_url

__all__ = ["clean_tracking_params", "hostname_of", "is_http_url", "normalize_url", "resolve_url"]
