import asyncio
import ipaddress
import logging
import socket
from typing import Iterable, List, Tuple

logger = logging.getLogger("uvicorn.error")


def _range(network: str, mask: str) -> Tuple[int, int]:
    return int(ipaddress.IPv4Address(network)), int(ipaddress.IPv4Address(mask))


# https://en.wikipedia.org/wiki/Private_network
PRIVATE_RANGES: Tuple[Tuple[int, int], ...] = (
    _range("10.0.0.0", "255.0.0.0"),
    _range("172.16.0.0", "255.240.0.0"),
    _range("192.168.0.0", "255.255.0.0"),
    _range("127.0.0.1", "255.255.255.255"),
)


def is_private(addresses: Iterable[str]) -> bool:
    """
    True when any of the resolved addresses falls in a private IPv4 range.

    IPv4-mapped IPv6 addresses are checked as their IPv4 form; other IPv6
    addresses are not evaluated.
    """
    for raw in addresses:
        address = ipaddress.ip_address(raw.split("%", 1)[0])
        if isinstance(address, ipaddress.IPv6Address):
            if address.ipv4_mapped is None:
                continue
            address = address.ipv4_mapped
        value = int(address)
        for network, mask in PRIVATE_RANGES:
            if value & mask == network:
                return True
    return False


async def resolve_host(host: str) -> List[str]:
    """Resolve a host name to its distinct addresses. Raises OSError on failure."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    addresses: List[str] = []
    for _family, _type, _proto, _canonname, sockaddr in infos:
        if sockaddr[0] not in addresses:
            addresses.append(sockaddr[0])
    logger.debug(f"[SSRF] {host} resolved to {addresses}")
    return addresses
