"""URL canonicalisation for identity comparison."""

from __future__ import annotations

from urllib.parse import urlsplit


def normalize_url(url: str) -> str:
    """Return a canonical key for *url*.

    Lowercases scheme and host, strips a leading ``www.`` and one trailing
    slash, and drops the query string and fragment, so URLs that differ only
    by tracking parameters compare equal.  Input that does not parse as an
    absolute URL falls back to ``url.lower()``.
    """
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return url.lower()

    if not parts.scheme or not host:
        return url.lower()

    if host.startswith("www."):
        host = host[4:]

    path = parts.path
    if path.endswith("/"):
        path = path[:-1]

    return f"{parts.scheme}://{host}{path}"


def extract_domain(url: str) -> str:
    """Hostname of *url* without ``www.``; empty string if unparseable."""
    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host
