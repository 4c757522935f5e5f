"""
Caller address resolution and trusted-network checks.

The subnet bypass trusts ``X-Real-Ip`` and ``X-Forwarded-For``. Those headers
are only meaningful when the proxy in front of the gate overwrites them; a
client that reaches the gate directly can claim any address.
"""

from ipaddress import IPv4Network, IPv6Network, ip_address, ip_network
from typing import Union

from starlette.requests import HTTPConnection

from shared.errors import ConfigurationError
from shared.logging import get_logger

logger = get_logger("gate.client_network")

Network = Union[IPv4Network, IPv6Network]

REAL_IP_HEADER = "X-Real-Ip"
FORWARDED_FOR_HEADER = "X-Forwarded-For"


def parse_subnet(value: str) -> Network:
    """Parse a CIDR string. Host bits are accepted and masked off."""
    value = value.strip()
    _, slash, prefix_length = value.partition("/")
    if not slash or not _is_prefix_length(prefix_length):
        raise ConfigurationError(
            f"subnet parse error: {value!r} is not <address>/<prefix length>",
            details={"allow_subnet": value}
        )
    try:
        return ip_network(value, strict=False)
    except ValueError as e:
        raise ConfigurationError(
            f"subnet parse error: {e}",
            details={"allow_subnet": value}
        ) from e


def _is_prefix_length(value: str) -> bool:
    # Decimal bit count only; netmask notation and leading zeros are rejected
    return value.isascii() and value.isdigit() and (value == "0" or not value.startswith("0"))


def resolve_client_address(request: HTTPConnection) -> str:
    """Return the caller address: X-Real-Ip, then X-Forwarded-For, then the peer."""
    address = request.headers.get(REAL_IP_HEADER, "").strip()
    if not address:
        forwarded_for = request.headers.get(FORWARDED_FOR_HEADER, "")
        address = forwarded_for.split(",")[0].strip()
    if not address and request.client:
        address = request.client.host or ""
    return address


def is_in_allowed_subnet(address: str, subnet: Network) -> bool:
    """Check subnet membership. Unparseable addresses are never trusted."""
    try:
        ip = ip_address(address)
    except ValueError:
        logger.debug("Invalid client address", address=address)
        return False
    return ip in subnet
