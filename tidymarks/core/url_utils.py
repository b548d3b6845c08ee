from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)


TRACKING_PARAMS = {
    "fbclid",
    "gclid",
}
TRACKING_PARAM_PREFIXES: tuple[str, ...] = ("utm_",)

_WWW_PREFIX = "www."


@dataclass(frozen=True, slots=True)
class ParsedBookmarkUrl:
    """The pieces of a bookmark URL that duplicate detection compares."""

    host: str
    path: str
    query: str
    fragment: str
    raw_query: str = ""

    @property
    def is_root(self) -> bool:
        """True for a bare site root: empty or ``/`` path, no query, no fragment.

        Tracking parameters count as a query here, so ``/?utm_source=x`` is a page.
        """
        return self.path in ("", "/") and not self.raw_query and not self.fragment

    @property
    def normalized(self) -> str:
        path = self.path or "/"
        query = f"?{self.query}" if self.query else ""
        fragment = f"#{self.fragment}" if self.fragment else ""
        return f"{self.host}{path}{query}{fragment}"


def is_tracking_param(key: str) -> bool:
    key_lower = key.lower()
    if key_lower in TRACKING_PARAMS:
        return True
    return any(key_lower.startswith(prefix) for prefix in TRACKING_PARAM_PREFIXES)


def strip_tracking_params(query: str) -> str:
    """Drop tracking parameters from a raw query string.

    The remaining ``key=value`` pairs keep their original order and encoding.
    """
    if not query:
        return ""
    kept = []
    for pair in query.split("&"):
        if not pair:
            continue
        key = pair.split("=", 1)[0]
        if is_tracking_param(key):
            continue
        kept.append(pair)
    return "&".join(kept)


def normalize_host(hostname: str) -> str:
    host = hostname.lower()
    if host.startswith(_WWW_PREFIX):
        host = host[len(_WWW_PREFIX) :]
    return host


def parse_bookmark_url(url: str) -> ParsedBookmarkUrl:
    """Split a bookmark URL into its normalized comparison parts.

    - Scheme is dropped
    - Host is lowercased and a leading ``www.`` label removed
    - Tracking query params (``utm_*``, ``fbclid``, ``gclid``) are removed
    - Path, remaining query and fragment are kept verbatim
    - The query as written is kept in ``raw_query`` for root detection

    Raises:
        ValueError: If the URL cannot be parsed or carries no host.

    """
    if not url or not isinstance(url, str):
        msg = "URL cannot be empty"
        raise ValueError(msg)

    parts = urlsplit(url.strip())
    if not parts.scheme:
        msg = "URL has no scheme"
        raise ValueError(msg)

    hostname = parts.hostname
    if not hostname:
        msg = "URL has no host"
        raise ValueError(msg)

    host = normalize_host(hostname)
    # Accessing .port validates it and raises ValueError for garbage ports.
    port = parts.port
    if port is not None:
        host = f"{host}:{port}"

    return ParsedBookmarkUrl(
        host=host,
        path=parts.path,
        query=strip_tracking_params(parts.query),
        fragment=parts.fragment,
        raw_query=parts.query,
    )


def normalize_bookmark_url(url: str) -> str:
    """Return the comparison key used for duplicate detection.

    Two URLs are duplicates iff their keys are byte-equal.

    Raises:
        ValueError: If the URL is malformed.

    """
    normalized = parse_bookmark_url(url).normalized
    logger.debug("normalize_bookmark_url", extra={"url": url[:100], "normalized": normalized[:100]})
    return normalized


def try_parse_bookmark_url(url: str | None) -> ParsedBookmarkUrl | None:
    if not url:
        return None
    try:
        return parse_bookmark_url(url)
    except ValueError as exc:
        logger.debug("bookmark_url_unparseable", extra={"url": url[:100], "error": str(exc)})
        return None


def is_probeable_url(url: str | None) -> bool:
    """Whether a URL can be checked for reachability over HTTP."""
    if not url:
        return False
    scheme = urlsplit(url).scheme.lower()
    return scheme in ("http", "https")
