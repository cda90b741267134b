"""
Network egress fortress.

Outbound targets must use an allow-listed scheme and must not point at a
private address, either literally or through DNS resolution. Resolution
failures are not violations: a flaky resolver should not fail a run, and the
request itself will fail naturally if the host really does not resolve.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from collections.abc import Awaitable, Callable, Iterable
from urllib.parse import urlsplit

from flowguard.errors import EgressViolation, ErrorKind

logger = logging.getLogger(__name__)

PRIVATE_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in (
        "127.0.0.0/8",
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "169.254.0.0/16",
        "::1/128",
        "fc00::/7",
        "fe80::/10",
    )
)

Resolver = Callable[[str], Awaitable[list[str]]]


def parse_ip(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Return the address if ``host`` is an IP literal (brackets/zone ids tolerated)."""
    host = host.strip()
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    host = host.split("%", 1)[0]
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None


def is_private_ip(address: str | ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    """True if the address falls in the private-address denylist."""
    ip = parse_ip(address) if isinstance(address, str) else address
    if ip is None:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip.version == net.version and ip in net for net in PRIVATE_NETWORKS)


async def system_resolver(host: str) -> list[str]:
    """Resolve a hostname to every address the system resolver returns."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    return [info[4][0] for info in infos]


class EgressPolicy:
    """
    Allow-listed schemes plus a private-address denylist.

    Example:
        egress = EgressPolicy(allowed_schemes=("http", "https"))
        await egress.check("https://example.com/api")   # ok
        await egress.check("http://10.0.0.5/admin")     # EgressDenylist
    """

    def __init__(
        self,
        allowed_schemes: Iterable[str] = ("http", "https", "imaps"),
        resolver: Resolver | None = None,
        dns_timeout_seconds: float = 5.0,
    ):
        self.allowed_schemes = frozenset(s.lower().rstrip(":") for s in allowed_schemes)
        self._resolver = resolver or system_resolver
        self._dns_timeout = dns_timeout_seconds

    async def check(self, url: str) -> None:
        """
        Validate an outbound URL.

        Raises:
            EgressViolation: kind EgressProtocol, EgressDenylist or
                EgressDnsPrivateIp
        """
        try:
            parts = urlsplit(url.strip())
        except ValueError as e:
            raise EgressViolation(f"Invalid URL: {url}", ErrorKind.EGRESS_PROTOCOL) from e

        scheme = parts.scheme.lower()
        if scheme not in self.allowed_schemes:
            raise EgressViolation(
                f"Protocol '{scheme or '(none)'}' not allowed", ErrorKind.EGRESS_PROTOCOL
            )

        # .hostname strips IPv6 brackets and lowercases
        host = parts.hostname
        if not host:
            raise EgressViolation(f"URL has no host: {url}", ErrorKind.EGRESS_PROTOCOL)

        literal = parse_ip(host)
        if literal is not None:
            if is_private_ip(literal):
                raise EgressViolation(
                    f"Direct IP access to private network denied: {host}",
                    ErrorKind.EGRESS_DENYLIST,
                )
            return

        try:
            addresses = await asyncio.wait_for(self._resolver(host), timeout=self._dns_timeout)
        except (OSError, TimeoutError) as e:
            logger.info(f"DNS resolution for '{host}' failed, skipping private-IP check: {e}")
            return

        for address in addresses:
            if is_private_ip(address):
                raise EgressViolation(
                    f"Domain '{host}' resolved to private IP {address}",
                    ErrorKind.EGRESS_DNS_PRIVATE_IP,
                )
