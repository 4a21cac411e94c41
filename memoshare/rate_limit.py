"""Rate limiting for sign-in attempts.

Clients are keyed by IP. ``X-Forwarded-For`` is honoured only when the direct
peer is a trusted proxy, so a client cannot pick its own key.
"""

import ipaddress
import os
from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from .config import get_settings
from .logging_config import get_logger

logger = get_logger("memoshare.rate_limit")

# Override with MEMOSHARE_TRUSTED_PROXY_CIDRS (comma-separated CIDRs).
_DEFAULT_TRUSTED_CIDRS = [
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "127.0.0.0/8",
    "::1/128",
]

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


def _load_trusted_cidrs() -> list[Network]:
    raw = os.environ.get("MEMOSHARE_TRUSTED_PROXY_CIDRS", "")
    cidrs = [s.strip() for s in raw.split(",") if s.strip()] if raw else _DEFAULT_TRUSTED_CIDRS
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr}")
    return networks


_trusted_networks: Optional[list[Network]] = None


def _get_trusted_networks() -> list[Network]:
    global _trusted_networks
    if _trusted_networks is None:
        _trusted_networks = _load_trusted_cidrs()
    return _trusted_networks


def is_trusted_proxy(ip_str: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in network for network in _get_trusted_networks())


def get_client_ip(request: Request) -> str:
    """Client IP, using the leftmost ``X-Forwarded-For`` entry behind a trusted proxy."""
    direct_ip = get_remote_address(request)
    if is_trusted_proxy(direct_ip):
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            client_ip = forwarded_for.split(",")[0].strip()
            if client_ip:
                return client_ip
    return direct_ip


_signin_limit: Optional[str] = None


def configure_signin_limit(value: Optional[str]) -> None:
    """Set the sign-in limit for the running app (None falls back to settings)."""
    global _signin_limit
    _signin_limit = value


def signin_limit() -> str:
    """Current sign-in limit, e.g. ``"20/minute"``."""
    return _signin_limit or get_settings().signin_rate_limit


limiter = Limiter(key_func=get_client_ip)
