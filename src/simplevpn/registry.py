# src/simplevpn/registry.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .addressing import host_cidr
from .conf import render_peer_section
from .environment import EnvironmentProfile, resolve_live_interface
from .errors import ConfigNotFound, InvalidArguments, TunnelEngineError
from .files import append_private
from .models import Peer
from .wireguard import TunnelEngine

log = logging.getLogger(__name__)


@dataclass
class AddPeerResult:
    peer: Peer
    interface: str
    live_applied: bool


class PeerRegistry:
    """
    Ajout de clients sur un serveur : le fichier est en append-only, puis le
    peer est poussé à chaud dans l'interface (sans couper les autres clients).

    Pas de verrou : deux add-peer simultanés sur le même fichier ne sont pas
    protégés. Pas de contrôle de chevauchement des AllowedIPs non plus.
    """

    def __init__(self, tunnel: TunnelEngine, profile: EnvironmentProfile, interface: str):
        self.tunnel = tunnel
        self.profile = profile
        self.interface = interface

    def add_peer(
        self,
        server_config_path: Path,
        peer_public_key: str,
        peer_address: str,
        label: Optional[str] = None,
    ) -> AddPeerResult:
        key = (peer_public_key or "").strip()
        if not key or any(c.isspace() for c in key):
            raise InvalidArguments("Peer public key is empty or contains whitespace")
        allowed = host_cidr(peer_address)
        if not server_config_path.exists():
            raise ConfigNotFound(
                f"Server config not found: {server_config_path}",
                hint="Run 'sudo vpn server-setup' first.",
            )

        peer = Peer(
            public_key=key,
            allowed_ips=[allowed],
            label=label or f"Client VPN IP: {peer_address.strip()}",
        )
        log.info("Adding peer: %s (%s)", allowed, key)
        append_private(server_config_path, "\n" + render_peer_section(peer))

        # Rechargement à chaud : wg set ne touche pas aux autres peers
        live = resolve_live_interface(self.profile, self.tunnel, self.interface)
        try:
            self.tunnel.set_peer(live, key, peer.allowed_ips)
        except TunnelEngineError as exc:
            log.warning(
                "Peer written to %s but not applied to running interface %s (%s). "
                "It will take effect on the next restart of the interface.",
                server_config_path, live, exc,
            )
            return AddPeerResult(peer=peer, interface=live, live_applied=False)

        return AddPeerResult(peer=peer, interface=live, live_applied=True)
