# src/simplevpn/init_server.py

from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path

from .addressing import subnet_of
from .conf import render_conf, write_conf
from .config_builder import build_server_config
from .connection import ConnectionController, Transition
from .environment import NetworkEnvironment, require_root, require_tools
from .keys import KeyStore
from .models import Role
from .settings import Settings
from .wireguard import Runner, WgTools, run_cmd

log = logging.getLogger(__name__)


@dataclass
class ServerSummary:
    interface: str
    address: str
    listen_port: int
    public_key: str
    config_path: Path
    transition: Transition


def init_server(
    settings: Settings,
    tools: WgTools,
    environment: NetworkEnvironment,
    runner: Runner = run_cmd,
) -> ServerSummary:
    # Pré-vol : rien n'est écrit avant ces vérifications
    require_root("server-setup")
    profile = environment.detect()
    require_tools("wg", "wg-quick")
    vpn_subnet = subnet_of(settings.server_address, fallback=settings.vpn_subnet)

    identity = KeyStore(tools).load_or_generate(Role.SERVER, settings.config_dir)

    config = build_server_config(
        identity,
        vpn_address=settings.server_address,
        listen_port=settings.listen_port,
        environment=profile,
        vpn_subnet=vpn_subnet,
    )
    path = write_conf(settings.server_conf_path, render_conf(config))
    log.info("Server config written to %s", path)

    log.info("Enabling IP forwarding (%s)...", profile.nat.name)
    profile.nat.enable_forwarding(runner)

    controller = ConnectionController(tools, profile, settings.interface, Role.SERVER)
    transition = controller.connect(restart_existing=True)

    return ServerSummary(
        interface=settings.interface,
        address=settings.server_address,
        listen_port=settings.listen_port,
        public_key=identity.public_key or "",
        config_path=path,
        transition=transition,
    )
