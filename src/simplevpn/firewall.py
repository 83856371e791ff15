# src/simplevpn/firewall.py
from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from .errors import TunnelEngineError
from .wireguard import Runner, _stderr, run_cmd

log = logging.getLogger(__name__)


# -----------------------------
# NAT (appliqué par PostUp / PostDown)
# -----------------------------

PF_ANCHOR = "com.wireguard"
IPV4_FORWARD_LINE = "net.ipv4.ip_forward=1"


def _sysctl(runner: Runner, setting: str) -> None:
    try:
        runner(["sysctl", "-w", setting])
    except subprocess.CalledProcessError as exc:
        raise TunnelEngineError(
            f"Cannot enable IP forwarding ({setting}): {_stderr(exc)}",
            hint="Run with: sudo vpn server-setup",
        ) from None


class NatStrategy(ABC):
    """
    Produit les commandes PostUp/PostDown que wg-quick exécute à la montée et
    à la descente de l'interface, et active le forwarding IP du noyau.
    """
    name = "nat"

    @abstractmethod
    def post_up(self, subnet: str, egress: str) -> str: ...

    @abstractmethod
    def post_down(self, subnet: str, egress: str) -> str: ...

    @abstractmethod
    def enable_forwarding(self, runner: Runner = run_cmd) -> None: ...


class IptablesNat(NatStrategy):
    name = "iptables"

    def __init__(self, sysctl_conf: Path = Path("/etc/sysctl.conf")):
        self.sysctl_conf = sysctl_conf

    def _rules(self, op: str, subnet: str, egress: str) -> str:
        # MASQUERADE : réécrit l'IP source des paquets VPN avec l'IP publique
        return "; ".join([
            f"iptables -t nat {op} POSTROUTING -s {subnet} -o {egress} -j MASQUERADE",
            f"iptables {op} FORWARD -i %i -j ACCEPT",
            f"iptables {op} FORWARD -o %i -j ACCEPT",
        ])

    def post_up(self, subnet: str, egress: str) -> str:
        return self._rules("-A", subnet, egress)

    def post_down(self, subnet: str, egress: str) -> str:
        return self._rules("-D", subnet, egress)

    def enable_forwarding(self, runner: Runner = run_cmd) -> None:
        _sysctl(runner, IPV4_FORWARD_LINE)

        # Persistant après reboot
        try:
            existing = self.sysctl_conf.read_text(encoding="utf-8") if self.sysctl_conf.exists() else ""
            if IPV4_FORWARD_LINE in (l.strip() for l in existing.splitlines()):
                return
            with self.sysctl_conf.open("a", encoding="utf-8") as f:
                if existing and not existing.endswith("\n"):
                    f.write("\n")
                f.write(IPV4_FORWARD_LINE + "\n")
        except OSError as exc:
            raise TunnelEngineError(
                f"Cannot persist IP forwarding in {self.sysctl_conf}: {exc.strerror or exc}",
                hint=f"Add '{IPV4_FORWARD_LINE}' to {self.sysctl_conf} manually, or run with sudo.",
            ) from None
        log.info("Persisted %s in %s", IPV4_FORWARD_LINE, self.sysctl_conf)


class PfNat(NatStrategy):
    """macOS : pf (packet filter) au lieu d'iptables."""
    name = "pf"

    def post_up(self, subnet: str, egress: str) -> str:
        return (
            f"echo 'nat on {egress} from {subnet} to any -> ({egress})' "
            f"| pfctl -a {PF_ANCHOR} -f - 2>/dev/null; pfctl -e 2>/dev/null || true"
        )

    def post_down(self, subnet: str, egress: str) -> str:
        return f"pfctl -a {PF_ANCHOR} -F all 2>/dev/null || true"

    def enable_forwarding(self, runner: Runner = run_cmd) -> None:
        _sysctl(runner, "net.inet.ip.forwarding=1")


# -----------------------------
# Protection contre les fuites IPv6 (client)
# -----------------------------

class LeakGuard(ABC):
    @abstractmethod
    def suspend(self) -> None: ...

    @abstractmethod
    def restore(self) -> None: ...


class NoLeakGuard(LeakGuard):
    """Linux : wg-quick gère déjà ::/0 dans la table de routage."""

    def suspend(self) -> None:
        return None

    def restore(self) -> None:
        return None


class Ipv6LeakGuard(LeakGuard):
    """
    macOS : coupe IPv6 sur chaque service réseau pendant que le tunnel est
    actif, puis le remet en automatique.
    """

    def __init__(self, runner: Runner = run_cmd, sudo: bool = True):
        self._run = runner
        self.sudo = sudo

    def services(self) -> List[str]:
        out = self._run(["networksetup", "-listallnetworkservices"]).stdout
        names = []
        for line in out.splitlines():
            line = line.strip()
            # en-tête "An asterisk (*) denotes..." et services désactivés
            if not line or line.startswith("An asterisk") or line.startswith("*"):
                continue
            names.append(line)
        return names

    def _apply(self, flag: str) -> None:
        for svc in self.services():
            cmd = ["networksetup", flag, svc]
            if self.sudo:
                cmd.insert(0, "sudo")
            proc = self._run(cmd, check=False)
            if proc.returncode != 0:
                log.warning("networksetup %s failed for %r: %s", flag, svc, (proc.stderr or "").strip())

    def suspend(self) -> None:
        log.info("Disabling IPv6 to prevent leaks...")
        self._apply("-setv6off")

    def restore(self) -> None:
        log.info("Re-enabling IPv6...")
        self._apply("-setv6automatic")
