from __future__ import annotations

import ipaddress
from typing import Iterable
from urllib.parse import parse_qsl, urlencode, urlparse, urlsplit, urlunsplit

from webscout.errors import BlockedSiteError

# Hosts that must never be fetched regardless of configuration.
INTERNAL_HOSTS = frozenset(
    {
        "localhost",
        "0.0.0.0",
        "169.254.169.254",
        "169.254.169.253",
        "metadata.google.internal",
        "100.100.100.200",
    }
)


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except ValueError:
        return False


def normalize_host(url: str) -> str:
    try:
        host = (urlparse(url).hostname or "").lower().strip()
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host


def canonical_url(url: str) -> str:
    """Scheme/host lowercased, fragment dropped, query sorted."""
    parsed = urlsplit(url.strip())
    scheme = (parsed.scheme or "https").lower()
    netloc = parsed.netloc.lower()
    path = parsed.path or "/"
    query = urlencode(sorted(parse_qsl(parsed.query, keep_blank_values=True)))
    return urlunsplit((scheme, netloc, path, query, ""))


def host_matches(host: str, domain: str) -> bool:
    """Exact match or subdomain of ``domain``."""
    domain = domain.lower().strip()
    return host == domain or host.endswith("." + domain)


def is_blocked_domain(url: str, blocked: Iterable[str]) -> bool:
    host = normalize_host(url)
    if not host:
        return False
    return any(host_matches(host, domain) for domain in blocked)


def _is_internal_address(host: str) -> bool:
    if host in INTERNAL_HOSTS:
        return True
    try:
        address = ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_unspecified
    )


def ensure_fetchable(url: str, blocked: Iterable[str]) -> None:
    """Raise BlockedSiteError unless ``url`` is an http(s) URL we are allowed to fetch."""
    if not is_valid_url(url):
        raise BlockedSiteError(url, "only http and https URLs with a host are allowed")
    host = normalize_host(url)
    if _is_internal_address(host):
        raise BlockedSiteError(url, f"internal or private network host {host}")
    if is_blocked_domain(url, blocked):
        raise BlockedSiteError(url, f"domain {host} is on the blocklist")
