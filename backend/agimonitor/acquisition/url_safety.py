"""Outbound URL safety gate.

Every URL the crawler is about to contact passes through :func:`check_url`
first, whether it came from the source registry, a feed entry, a sitemap, a
redirect, or a search result.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})
BLOCKED_HOSTNAMES = frozenset({"localhost", "localhost.localdomain", "ip6-localhost", "ip6-loopback"})
METADATA_HOSTNAMES = frozenset({"169.254.169.254", "metadata.google.internal", "metadata"})

_PRIVATE_NETWORKS = (
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("100.64.0.0/10"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("::/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
)


class UnsafeUrlError(ValueError):
    """Raised when a URL is refused by the safety gate."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Refusing to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


@dataclass(frozen=True)
class UrlCheck:
    safe: bool
    reason: str | None = None


def _parse_ip(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        addr = ipaddress.ip_address(host)
    except ValueError:
        return None
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        return addr.ipv4_mapped
    return addr


def is_private_address(addr: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    return any(addr in network for network in _PRIVATE_NETWORKS if addr.version == network.version)


def check_url(url: str) -> UrlCheck:
    """Classify a URL as safe or unsafe without touching the network."""
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
        # Accessing .port validates it
        parts.port
    except (ValueError, AttributeError):
        return UrlCheck(False, "Invalid URL")

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        return UrlCheck(False, f"Blocked scheme: {scheme or 'none'}")
    if not hostname:
        return UrlCheck(False, "Invalid URL: missing host")

    host = hostname.lower().rstrip(".")
    if host in METADATA_HOSTNAMES:
        return UrlCheck(False, "Cloud metadata endpoint blocked")
    if host in BLOCKED_HOSTNAMES or host.endswith(".localhost"):
        return UrlCheck(False, "Localhost blocked")

    addr = _parse_ip(host)
    if addr is not None:
        if addr.is_loopback:
            return UrlCheck(False, "Localhost blocked")
        if is_private_address(addr):
            return UrlCheck(False, f"Private IP blocked: {addr}")
    return UrlCheck(True)


async def check_url_with_dns(url: str) -> UrlCheck:
    """Like :func:`check_url`, but also refuses hostnames resolving to private space."""
    result = check_url(url)
    if not result.safe:
        return result

    host = (urlsplit(url.strip()).hostname or "").lower()
    if _parse_ip(host) is not None:
        return result

    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as exc:
        logger.info("DNS lookup failed for %s: %s", host, exc)
        return UrlCheck(False, "DNS resolution failed")

    for info in infos:
        addr = _parse_ip(info[4][0].split("%", 1)[0])
        if addr is not None and (addr.is_loopback or is_private_address(addr)):
            return UrlCheck(False, f"Hostname resolves to private IP: {addr}")
    return result


def ensure_safe_url(url: str) -> str:
    """Return ``url`` if it passes the gate, otherwise raise :class:`UnsafeUrlError`."""
    result = check_url(url)
    if not result.safe:
        logger.warning("Safety gate refused %s: %s", url, result.reason)
        raise UnsafeUrlError(url, result.reason or "unsafe")
    return url
