# src/simplevpn/wireguard.py
from __future__ import annotations
import logging
import os
import platform
import shutil
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from .errors import MissingExternalTool, TunnelEngineError

log = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


# ---------- Exécution de commandes ----------

WG_INSTALL_HINT = {
    "Linux": (
        "Install WireGuard tools:\n"
        "  Ubuntu/Debian:  sudo apt install wireguard\n"
        "  Fedora:         sudo dnf install wireguard-tools\n"
        "  Arch:           sudo pacman -S wireguard-tools"
    ),
    "Darwin": "Install WireGuard tools:\n  macOS:          brew install wireguard-tools",
}


def install_hint(tool: str, system: Optional[str] = None) -> Optional[str]:
    if tool in ("wg", "wg-quick"):
        return WG_INSTALL_HINT.get(system or platform.system())
    return None


def _which(tool: str) -> str:
    path = shutil.which(tool)
    if not path:
        raise MissingExternalTool(f"Required command not found: {tool}", hint=install_hint(tool))
    return path


def run_cmd(
    cmd: List[str],
    check: bool = True,
    input: Optional[str] = None,
) -> subprocess.CompletedProcess:
    """
    Lance une commande et capture stdout/stderr (texte).
    Lève CalledProcessError si check=True et code != 0.
    stdin (clé privée pour `wg pubkey`) n'apparaît jamais dans l'erreur.
    """
    try:
        return subprocess.run(cmd, input=input, capture_output=True, text=True, check=check)
    except FileNotFoundError:
        tool = cmd[1] if cmd[0] == "sudo" and len(cmd) > 1 else cmd[0]
        raise MissingExternalTool(f"Required command not found: {tool}", hint=install_hint(tool)) from None


def _stderr(exc: subprocess.CalledProcessError) -> str:
    return (exc.stderr or "").strip() or f"exit code {exc.returncode}"


# ---------- Capacités injectées ----------

class KeyEngine(Protocol):
    def genkey(self) -> str: ...

    def pubkey(self, private_key: str) -> str: ...


class TunnelEngine(Protocol):
    def up(self, interface: str) -> None: ...

    def down(self, interface: str) -> bool: ...

    def set_peer(self, interface: str, public_key: str, allowed_ips: List[str]) -> None: ...

    def show(self, interface: str) -> Optional[str]: ...

    def interfaces(self) -> List[str]: ...

    def install_config(self, source: Path, dest: Path) -> None: ...


class WgTools:
    """
    KeyEngine + TunnelEngine au-dessus de wg(8) et wg-quick(8).
    Les commandes qui touchent au noyau passent par sudo quand on n'est pas root.
    """

    def __init__(self, runner: Runner = run_cmd, sudo: Optional[bool] = None):
        self._run = runner
        self.sudo = (os.geteuid() != 0) if sudo is None else sudo

    def _priv(self, *args: str) -> List[str]:
        return ["sudo", *args] if self.sudo else list(args)

    # --- Génération de clés ---

    def genkey(self) -> str:
        return self._run(["wg", "genkey"]).stdout.strip()

    def pubkey(self, private_key: str) -> str:
        # pubkey lit la clé privée sur stdin
        return self._run(["wg", "pubkey"], input=private_key + "\n").stdout.strip()

    # --- Interface ---

    def up(self, interface: str) -> None:
        try:
            self._run(self._priv("wg-quick", "up", interface))
        except subprocess.CalledProcessError as exc:
            raise TunnelEngineError(f"wg-quick up {interface} failed: {_stderr(exc)}") from None

    def down(self, interface: str) -> bool:
        proc = self._run(self._priv("wg-quick", "down", interface), check=False)
        if proc.returncode != 0:
            log.debug("wg-quick down %s: %s", interface, (proc.stderr or "").strip())
        return proc.returncode == 0

    def set_peer(self, interface: str, public_key: str, allowed_ips: List[str]) -> None:
        try:
            self._run(self._priv(
                "wg", "set", interface,
                "peer", public_key,
                "allowed-ips", ",".join(allowed_ips),
            ))
        except subprocess.CalledProcessError as exc:
            raise TunnelEngineError(f"wg set {interface} failed: {_stderr(exc)}") from None

    def show(self, interface: str) -> Optional[str]:
        proc = self._run(self._priv("wg", "show", interface), check=False)
        if proc.returncode != 0:
            return None
        return proc.stdout

    def interfaces(self) -> List[str]:
        proc = self._run(self._priv("wg", "show", "interfaces"), check=False)
        if proc.returncode != 0:
            return []
        return proc.stdout.split()

    # --- Fichiers système ---

    def install_config(self, source: Path, dest: Path) -> None:
        """Copie une config dans /etc/wireguard pour que wg-quick la trouve par nom."""
        if not self.sudo:
            try:
                dest.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
                shutil.copyfile(source, dest)
                dest.chmod(0o600)
            except OSError as exc:
                raise TunnelEngineError(
                    f"Cannot install {dest}: {exc.strerror or exc}",
                    hint=f"Copy {source} to {dest} manually (mode 600).",
                ) from None
            return
        try:
            self._run(["sudo", "mkdir", "-p", str(dest.parent)])
            self._run(["sudo", "install", "-m", "600", str(source), str(dest)])
        except subprocess.CalledProcessError as exc:
            raise TunnelEngineError(f"Cannot install {dest}: {_stderr(exc)}") from None
