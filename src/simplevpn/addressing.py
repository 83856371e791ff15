# src/simplevpn/addressing.py
from __future__ import annotations
import ipaddress
from typing import Optional, Tuple

from .errors import InvalidArguments, InvalidEndpoint


def host_cidr(address: str) -> str:
    """
    '10.0.0.2' -> '10.0.0.2/32', 'fd00::2' -> 'fd00::2/128'.
    Une adresse déjà en notation CIDR est gardée telle quelle.
    """
    value = address.strip()
    try:
        if "/" in value:
            ipaddress.ip_interface(value)
            return value
        ip = ipaddress.ip_address(value)
    except ValueError:
        raise InvalidArguments(f"Invalid VPN address: {address!r}") from None
    return f"{ip}/{ip.max_prefixlen}"


def interface_address(address: str) -> ipaddress.IPv4Interface | ipaddress.IPv6Interface:
    try:
        return ipaddress.ip_interface(address.strip())
    except ValueError:
        raise InvalidArguments(f"Invalid interface address: {address!r}") from None


def subnet_of(address: str, fallback: Optional[str] = None) -> str:
    """
    Réseau VPN déduit d'une adresse d'interface ('10.0.0.2/24' -> '10.0.0.0/24').
    Pour une adresse hôte (/32, /128) on ne peut rien déduire : fallback.
    """
    iface = interface_address(address)
    if iface.network.prefixlen == iface.max_prefixlen:
        if fallback is None:
            raise InvalidArguments(
                f"Cannot derive the VPN subnet from host address {address!r}",
                hint="Pass the address with its prefix, e.g. 10.0.0.2/24",
            )
        return str(ipaddress.ip_network(fallback, strict=False))
    return str(iface.network)


def parse_endpoint(endpoint: str) -> Tuple[str, int]:
    """'host:port' ou '[v6]:port' -> (host, port)."""
    value = (endpoint or "").strip()
    if value.startswith("["):
        host, sep, rest = value[1:].partition("]")
        if not sep or not rest.startswith(":"):
            raise InvalidEndpoint(f"Endpoint must be host:port, got {endpoint!r}")
        port_s = rest[1:]
    else:
        host, sep, port_s = value.rpartition(":")
        if not sep or ":" in host:
            raise InvalidEndpoint(
                f"Endpoint must be host:port, got {endpoint!r}",
                hint="Example: 203.0.113.1:51820 (IPv6: [2001:db8::1]:51820)",
            )

    if not host or any(c.isspace() for c in host):
        raise InvalidEndpoint(f"Endpoint has no valid host: {endpoint!r}")
    try:
        port = int(port_s)
    except ValueError:
        raise InvalidEndpoint(f"Endpoint port is not a number: {endpoint!r}") from None
    if not 1 <= port <= 65535:
        raise InvalidEndpoint(f"Endpoint port out of range: {endpoint!r}")
    return host, port
