# src/simplevpn/connection.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .environment import EnvironmentProfile, resolve_live_interface
from .models import Role
from .wireguard import TunnelEngine

log = logging.getLogger(__name__)


class InterfaceState(str, Enum):
    DOWN = "down"
    UP = "up"


class Transition(str, Enum):
    CONNECTED = "connected"
    ALREADY_CONNECTED = "already_connected"
    RESTARTED = "restarted"
    DISCONNECTED = "disconnected"
    ALREADY_DISCONNECTED = "already_disconnected"


@dataclass
class StatusReport:
    state: InterfaceState
    interface: str
    details: Optional[str] = None   # sortie de `wg show`, telle quelle


class ConnectionController:
    """
    Machine à états down/up d'une interface. connect et disconnect sont
    idempotents ; côté client, IPv6 est suspendu pendant que le tunnel est up.
    """

    def __init__(self, tunnel: TunnelEngine, profile: EnvironmentProfile, interface: str, role: Role):
        self.tunnel = tunnel
        self.profile = profile
        self.interface = interface
        self.role = role

    def live_interface(self) -> str:
        return resolve_live_interface(self.profile, self.tunnel, self.interface)

    def is_up(self) -> bool:
        return self.tunnel.show(self.live_interface()) is not None

    def connect(self, restart_existing: bool = False) -> Transition:
        if self.is_up():
            if not restart_existing:
                log.warning("AlreadyConnected: VPN is already connected. Use 'disconnect' first to reconnect.")
                return Transition.ALREADY_CONNECTED
            log.warning("InterfaceAlreadyExists: interface %s already exists. Restarting...", self.interface)
            self.tunnel.down(self.interface)
            self._bring_up()
            return Transition.RESTARTED

        self._bring_up()
        return Transition.CONNECTED

    def _bring_up(self) -> None:
        guarded = self.role is Role.CLIENT
        if guarded:
            self.profile.leak_guard.suspend()
        log.info("Bringing up %s...", self.interface)
        try:
            self.tunnel.up(self.interface)
        except Exception:
            if guarded:
                self.profile.leak_guard.restore()
            raise
        log.info("WireGuard interface %s is up", self.interface)

    def disconnect(self) -> Transition:
        log.info("Bringing down %s...", self.interface)
        try:
            if self.tunnel.down(self.interface):
                result = Transition.DISCONNECTED
            else:
                log.warning("AlreadyDisconnected: VPN was not connected.")
                result = Transition.ALREADY_DISCONNECTED
        finally:
            if self.role is Role.CLIENT:
                self.profile.leak_guard.restore()
        return result

    def status(self) -> StatusReport:
        live = self.live_interface()
        details = self.tunnel.show(live)
        if details is None:
            return StatusReport(state=InterfaceState.DOWN, interface=self.interface)
        return StatusReport(state=InterfaceState.UP, interface=live, details=details)

    def teardown(self) -> List[str]:
        """Arrête l'interface et retourne les interfaces WireGuard encore actives."""
        if self.tunnel.down(self.interface):
            log.info("Interface stopped (%s)", self.interface)
        else:
            log.warning("AlreadyDisconnected: interface %s was not running", self.interface)
        return self.tunnel.interfaces()
