# src/simplevpn/init_client.py

from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .addressing import interface_address, parse_endpoint, subnet_of
from .conf import render_conf, write_conf
from .config_builder import build_client_config, parse_tunnel_mode
from .environment import NetworkEnvironment, require_tools
from .errors import InvalidArguments
from .files import give_back
from .keys import KeyStore
from .models import Identity, Role, TunnelMode
from .settings import Settings
from .wireguard import WgTools

log = logging.getLogger(__name__)


@dataclass
class ClientSummary:
    public_key: str
    address: str
    endpoint: str
    mode: TunnelMode
    config_path: Path
    installed_path: Path


def client_keys(settings: Settings, tools: WgTools, environment: NetworkEnvironment) -> Identity:
    environment.os_family()
    require_tools("wg")
    return KeyStore(tools).load_or_generate(Role.CLIENT, settings.config_dir)


def init_client(
    settings: Settings,
    tools: WgTools,
    environment: NetworkEnvironment,
    server_public_key: str,
    endpoint: str,
    address: Optional[str] = None,
    mode: str = "full",
) -> ClientSummary:
    address = address or settings.client_address

    # Validation des arguments avant de toucher aux clés ou aux fichiers
    tunnel_mode = parse_tunnel_mode(mode)
    parse_endpoint(endpoint)
    interface_address(address)
    if not server_public_key or any(c.isspace() for c in server_public_key):
        raise InvalidArguments("Server public key is empty or contains whitespace")
    vpn_subnet = subnet_of(address, fallback=settings.vpn_subnet)

    identity = client_keys(settings, tools, environment)

    config = build_client_config(
        identity,
        server_public_key=server_public_key,
        server_endpoint=endpoint,
        client_address=address,
        tunnel_mode=tunnel_mode,
        vpn_subnet=vpn_subnet,
        dns=settings.dns,
        keepalive=settings.keepalive,
    )
    path = write_conf(settings.client_conf_path, render_conf(config))
    give_back([path])
    log.info("Client config written to %s", path)

    # wg-quick cherche la config par nom d'interface dans /etc/wireguard
    installed = settings.wg_dir / f"{settings.interface}.conf"
    log.info("Copying config to %s (requires sudo)...", settings.wg_dir)
    tools.install_config(path, installed)
    log.info("Config installed to %s", installed)

    return ClientSummary(
        public_key=identity.public_key or "",
        address=address,
        endpoint=endpoint,
        mode=tunnel_mode,
        config_path=path,
        installed_path=installed,
    )
