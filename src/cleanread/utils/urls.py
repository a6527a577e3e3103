"""
URL helpers shared by the strategies, the converter and the cache key builder.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

TRACKING_PARAMS = frozenset(
    {
        "fbclid",
        "gclid",
        "ttclid",
        "si",
        "feature",
    }
)


def is_tracking_param(name: str) -> bool:
    """True for ``utm_*`` keys and the known click identifiers."""
    name = name.lower()
    return name.startswith("utm_") or name in TRACKING_PARAMS


def is_http_url(value: object) -> bool:
    """True for strings that parse as absolute http(s) URLs with a host."""
    if not isinstance(value, str):
        return False
    candidate = value.strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        return False
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(parts.netloc)


def hostname_of(url: Optional[str]) -> str:
    """Lowercased hostname of a URL, or an empty string."""
    if not url:
        return ""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def resolve_url(value: str, base_url: Optional[str]) -> str:
    """Resolve ``value`` against ``base_url``; protocol-relative URLs default to https."""
    if not value:
        return ""
    if value.startswith(("http://", "https://")):
        return value
    if value.startswith("//"):
        return f"https:{value}"
    if not base_url:
        return value
    try:
        return urljoin(base_url, value)
    except ValueError:
        return value


def clean_tracking_params(url: str) -> str:
    """Drop known tracking query parameters from an absolute http(s) URL."""
    if not url.startswith("http"):
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.query:
        return url
    pairs = parse_qsl(parts.query, keep_blank_values=True)
    kept = [(k, v) for k, v in pairs if not is_tracking_param(k)]
    if len(kept) == len(pairs):
        return url
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(kept), parts.fragment))


def normalize_url(url: str) -> str:
    """
    Canonical form used for cache keys.

    Lowercases scheme and host, drops the fragment, default ports and tracking
    parameters, and strips a trailing slash from non-root paths.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    port = parts.port
    if port and not ((scheme == "http" and port == 80) or (scheme == "https" and port == 443)):
        host = f"{host}:{port}"
    path = parts.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/")
    query = urlencode(
        sorted((k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if not is_tracking_param(k))
    )
    return urlunsplit((scheme, host, path, query, ""))
