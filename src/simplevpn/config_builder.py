# src/simplevpn/config_builder.py
from __future__ import annotations

import logging
from typing import Optional, Sequence

from .addressing import interface_address, parse_endpoint, subnet_of
from .environment import EnvironmentProfile
from .errors import InvalidArguments
from .models import Identity, InterfaceConfig, Peer, Role, TunnelMode

log = logging.getLogger(__name__)

FULL_TUNNEL_IPS = ["0.0.0.0/0", "::/0"]
DEFAULT_DNS = ("1.1.1.1",)
DEFAULT_KEEPALIVE = 25


def parse_tunnel_mode(value: str) -> TunnelMode:
    try:
        return TunnelMode(value.strip().lower())
    except ValueError:
        raise InvalidArguments(f"Unknown tunnel mode {value!r} (expected 'full' or 'split')") from None


def build_server_config(
    identity: Identity,
    vpn_address: str,
    listen_port: int,
    environment: EnvironmentProfile,
    vpn_subnet: Optional[str] = None,
) -> InterfaceConfig:
    """
    [Interface] serveur : PostUp/PostDown posent et retirent le NAT du
    sous-réseau VPN vers l'interface de sortie. Aucun peer au départ.
    """
    interface_address(vpn_address)
    if not 1 <= listen_port <= 65535:
        raise InvalidArguments(f"Listen port out of range: {listen_port}")
    subnet = vpn_subnet or subnet_of(vpn_address)
    egress = environment.egress_interface

    return InterfaceConfig(
        role=Role.SERVER,
        identity=identity,
        address=vpn_address,
        listen_port=listen_port,
        post_up=environment.nat.post_up(subnet, egress),
        post_down=environment.nat.post_down(subnet, egress),
        peers=[],
    )


def build_client_config(
    identity: Identity,
    server_public_key: str,
    server_endpoint: str,
    client_address: str,
    tunnel_mode: TunnelMode,
    vpn_subnet: Optional[str] = None,
    dns: Sequence[str] = DEFAULT_DNS,
    keepalive: int = DEFAULT_KEEPALIVE,
) -> InterfaceConfig:
    parse_endpoint(server_endpoint)
    interface_address(client_address)
    if not server_public_key or any(c.isspace() for c in server_public_key):
        raise InvalidArguments("Server public key is empty or contains whitespace")

    # AllowedIPs décide de ce qui passe dans le tunnel :
    #   full  : tout, et DNS forcé pour éviter les fuites
    #   split : uniquement le réseau VPN, DNS système conservé
    if tunnel_mode is TunnelMode.FULL:
        allowed_ips = list(FULL_TUNNEL_IPS)
        dns_servers = list(dns) or list(DEFAULT_DNS)
        log.info("Mode: Full tunnel (all traffic routed through VPN)")
    else:
        allowed_ips = [vpn_subnet or subnet_of(client_address)]
        dns_servers = None
        log.info("Mode: Split tunnel (only VPN traffic routed)")

    server = Peer(
        public_key=server_public_key,
        allowed_ips=allowed_ips,
        label="VPN server",
        endpoint=server_endpoint.strip(),
        # indispensable derrière un NAT : garde le mapping UDP ouvert
        persistent_keepalive=keepalive,
    )
    return InterfaceConfig(
        role=Role.CLIENT,
        identity=identity,
        address=client_address,
        dns=dns_servers,
        peers=[server],
    )
