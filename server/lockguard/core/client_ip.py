"""Resolve the caller's IP for attempt metadata.

The address is diagnostic only; nothing is rate limited on it. Forwarding
headers are trusted only when the direct peer is one of TRUSTED_PROXIES.
"""

import ipaddress
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Request

from lockguard.core.config import get_settings

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


@dataclass(frozen=True)
class TrustedProxies:
    addresses: frozenset[str] = frozenset()
    networks: tuple[IPNetwork, ...] = ()

    @classmethod
    def parse(cls, value: str) -> "TrustedProxies":
        """Parse a comma-separated list of IPs and CIDR ranges."""
        entries = [e.strip() for e in value.split(",") if e.strip()]
        return cls(
            addresses=frozenset(e for e in entries if "/" not in e),
            networks=tuple(ipaddress.ip_network(e, strict=False) for e in entries if "/" in e),
        )

    def __contains__(self, peer: str) -> bool:
        if peer in self.addresses:
            return True
        try:
            addr = ipaddress.ip_address(peer)
        except ValueError:
            return False
        return any(addr in net for net in self.networks)


@lru_cache(maxsize=1)
def trusted_proxies() -> TrustedProxies:
    return TrustedProxies.parse(get_settings().trusted_proxies)


def get_client_ip(request: Request) -> str:
    peer = request.client.host if request.client else "127.0.0.1"
    if peer not in trusted_proxies():
        return peer

    # nginx sets X-Real-IP; otherwise take the first X-Forwarded-For hop
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return peer
