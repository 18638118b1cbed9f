"""Base-URI validation and relative reference resolution."""

from __future__ import annotations

import logging
import re
from urllib.parse import urljoin, urlparse

from readstream.exceptions import ConfigError

logger = logging.getLogger(__name__)

# RFC 3986 scheme followed by ':'
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")

# Links that must never be rewritten against the base URI
_UNRESOLVED_LINK_PREFIXES: tuple[str, ...] = ("#", "mailto:", "tel:")


def validate_base_uri(base_uri: str) -> str:
    """Return *base_uri* stripped, or raise :class:`ConfigError` if unusable.

    A usable base has a scheme and, for hierarchical schemes, a host.
    """
    if not isinstance(base_uri, str) or not base_uri.strip():
        raise ConfigError(f"base URI must be a non-empty string, got {base_uri!r}")
    base_uri = base_uri.strip()
    try:
        parsed = urlparse(base_uri)
    except ValueError as exc:
        raise ConfigError(f"Invalid base URI {base_uri!r}: {exc}") from exc
    if not parsed.scheme:
        raise ConfigError(f"Base URI {base_uri!r} has no scheme")
    if parsed.scheme in ("http", "https") and not parsed.netloc:
        raise ConfigError(f"Base URI {base_uri!r} has no host")
    return base_uri


def is_absolute(url: str) -> bool:
    """Return True if *url* already carries a scheme."""
    return bool(_SCHEME_RE.match(url))


def resolve_url(url: str, base_uri: str) -> str:
    """Resolve *url* against *base_uri*; on failure keep *url* unchanged."""
    if not url or is_absolute(url):
        return url
    try:
        return urljoin(base_uri, url)
    except ValueError as exc:
        logger.warning("Failed to resolve %r against %r: %s", url, base_uri, exc)
        return url


def resolve_link(href: str, base_uri: str) -> str:
    """Resolve an anchor ``href``, leaving fragments, mailto: and tel: alone."""
    href = href.strip()
    if href.lower().startswith(_UNRESOLVED_LINK_PREFIXES):
        return href
    return resolve_url(href, base_uri)


def resolve_image_source(src: str, base_uri: str) -> str:
    """Resolve an image ``src``; absolute and ``data:`` URIs pass through."""
    return resolve_url(src.strip(), base_uri)
