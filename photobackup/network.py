"""LAN address helpers."""

import socket
from typing import List

import ifaddr


def lan_ipv4_addresses() -> List[str]:
    """
    All non-loopback IPv4 addresses of this host, sorted for determinism.
    """
    addresses = set()
    for adapter in ifaddr.get_adapters():
        for ip in adapter.ips:
            if not ip.is_IPv4:
                continue
            if ip.ip.startswith('127.'):
                continue
            addresses.add(ip.ip)
    return sorted(addresses)


def host_identifier() -> str:
    """Short host name used in the discovery record."""
    return socket.gethostname().split('.')[0]


def base_urls(port: int) -> List[str]:
    return [f"http://{address}:{port}" for address in lan_ipv4_addresses()]
