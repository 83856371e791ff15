# src/simplevpn/environment.py
from __future__ import annotations

import logging
import os
import platform
import subprocess
from dataclasses import dataclass
from typing import Optional

from .errors import InsufficientPrivilege, MissingExternalTool, UnsupportedPlatform
from .firewall import IptablesNat, Ipv6LeakGuard, LeakGuard, NatStrategy, NoLeakGuard, PfNat
from .models import OsFamily
from .settings import Settings
from .wireguard import Runner, TunnelEngine, _which, run_cmd

log = logging.getLogger(__name__)


@dataclass
class EnvironmentProfile:
    os_family: OsFamily
    egress_interface: str
    nat: NatStrategy
    leak_guard: LeakGuard

    @property
    def generated_names(self) -> bool:
        # macOS : wg-quick crée un utunN, pas un "wg0"
        return self.os_family is OsFamily.BSD_LIKE


def classify_os(system: str) -> OsFamily:
    if system == "Linux":
        return OsFamily.LINUX_LIKE
    if system == "Darwin" or system.endswith("BSD"):
        return OsFamily.BSD_LIKE
    raise UnsupportedPlatform(
        f"Unsupported OS: {system or 'unknown'}. Supported: Linux and macOS.",
    )


class NetworkEnvironment:
    """Sondage en lecture seule de l'hôte : famille d'OS, interface de sortie."""

    def __init__(self, settings: Settings, runner: Runner = run_cmd, system: Optional[str] = None):
        self.settings = settings
        self._run = runner
        self.system = platform.system() if system is None else system

    def os_family(self) -> OsFamily:
        return classify_os(self.system)

    def detect(self, probe_egress: bool = True) -> EnvironmentProfile:
        """
        probe_egress=False pour les commandes qui n'écrivent pas de règles NAT
        (connect, status, add-peer) : l'interface de repli est utilisée.
        """
        family = self.os_family()
        log.info("Detected OS: %s", family.value)
        egress = self.detect_egress_interface(family) if probe_egress else self.settings.egress_fallback
        if family is OsFamily.LINUX_LIKE:
            nat: NatStrategy = IptablesNat(self.settings.sysctl_conf)
            guard: LeakGuard = NoLeakGuard()
        else:
            nat = PfNat()
            guard = Ipv6LeakGuard(self._run, sudo=not is_root())
        return EnvironmentProfile(os_family=family, egress_interface=egress, nat=nat, leak_guard=guard)

    def detect_egress_interface(self, family: Optional[OsFamily] = None) -> str:
        """
        Interface utilisée pour joindre internet (nécessaire aux règles NAT).
        Ne lève jamais : en cas d'échec, warning + interface de repli.
        """
        family = family or self.os_family()
        iface = None
        try:
            if family is OsFamily.LINUX_LIKE:
                out = self._run(["ip", "route", "show", "default"]).stdout
                iface = _parse_linux_default_route(out)
            else:
                out = self._run(["route", "-n", "get", "default"]).stdout
                iface = _parse_bsd_default_route(out)
        except (subprocess.CalledProcessError, MissingExternalTool, OSError) as exc:
            log.debug("Default route probe failed: %s", exc)

        if not iface:
            fallback = self.settings.egress_fallback
            log.warning(
                "EgressInterfaceUndetected: could not auto-detect public interface. Using %r as fallback.",
                fallback,
            )
            return fallback
        log.info("Public network interface: %s", iface)
        return iface


def _parse_linux_default_route(out: str) -> Optional[str]:
    line = next((l for l in out.splitlines() if l.strip()), "")
    parts = line.split()
    if "dev" not in parts:
        return None
    idx = parts.index("dev")
    return parts[idx + 1] if idx + 1 < len(parts) else None


def _parse_bsd_default_route(out: str) -> Optional[str]:
    for line in out.splitlines():
        key, _, value = line.strip().partition(":")
        if key == "interface" and value.strip():
            return value.strip()
    return None


def resolve_live_interface(profile: EnvironmentProfile, tunnel: TunnelEngine, nominal: str) -> str:
    """
    Nom réel de l'interface en cours d'exécution. Sur macOS, wg-quick expose
    un utunN ; si on ne le trouve pas on garde le nom nominal.
    """
    if not profile.generated_names:
        return nominal
    names = tunnel.interfaces()
    if not names:
        log.warning("LiveInterfaceNameUnresolved: could not detect running interface. Using %s", nominal)
        return nominal
    return names[0]


# ---------- Pré-vol ----------

def is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


def require_root(action: str) -> None:
    if not is_root():
        raise InsufficientPrivilege(
            f"{action} requires root privileges.",
            hint="Run with: sudo vpn " + action,
        )


def require_tools(*tools: str) -> None:
    for tool in tools:
        _which(tool)
