# tests/conftest.py
from __future__ import annotations

import hashlib
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from simplevpn.environment import EnvironmentProfile
from simplevpn.errors import TunnelEngineError
from simplevpn.firewall import IptablesNat, LeakGuard, PfNat
from simplevpn.models import OsFamily
from simplevpn.settings import Settings


class FakeRunner:
    """
    Remplace run_cmd : enregistre chaque commande et renvoie une sortie
    programmée (clé = préfixe de la ligne de commande).
    """

    def __init__(self, outputs: Optional[Dict[str, Tuple[int, str, str]]] = None):
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []
        self.outputs = dict(outputs or {})

    def __call__(self, cmd, check=True, input=None):
        self.calls.append(list(cmd))
        self.inputs.append(input)
        line = " ".join(cmd)
        matches = [k for k in self.outputs if line.startswith(k)]
        rc, out, err = self.outputs[max(matches, key=len)] if matches else (0, "", "")
        if check and rc != 0:
            raise subprocess.CalledProcessError(rc, cmd, out, err)
        return subprocess.CompletedProcess(cmd, rc, out, err)


class FakeWg:
    """KeyEngine + TunnelEngine en mémoire."""

    def __init__(self, events: Optional[List[str]] = None):
        self.events = events if events is not None else []
        self.running: set = set()
        self.live_names: Dict[str, str] = {}
        self.peers: Dict[str, Dict[str, List[str]]] = {}
        self.installed: List[Tuple[Path, Path]] = []
        self.genkey_calls = 0
        self.fail_up = False
        self.fail_set = False

    # --- clés ---

    def genkey(self) -> str:
        self.genkey_calls += 1
        return f"priv-{self.genkey_calls:02d}-" + "k" * 34

    def pubkey(self, private_key: str) -> str:
        return "pub-" + hashlib.sha256(private_key.encode()).hexdigest()[:40]

    # --- interface ---

    def _live(self, interface: str) -> str:
        return self.live_names.get(interface, interface)

    def up(self, interface: str) -> None:
        self.events.append(f"up {interface}")
        if self.fail_up:
            raise TunnelEngineError(f"wg-quick up {interface} failed: boom")
        self.running.add(self._live(interface))

    def down(self, interface: str) -> bool:
        self.events.append(f"down {interface}")
        live = self._live(interface)
        if live not in self.running:
            return False
        self.running.discard(live)
        return True

    def set_peer(self, interface: str, public_key: str, allowed_ips: List[str]) -> None:
        self.events.append(f"set {interface} {public_key} {','.join(allowed_ips)}")
        if self.fail_set or interface not in self.running:
            raise TunnelEngineError(f"wg set {interface} failed: No such device")
        self.peers.setdefault(interface, {})[public_key] = list(allowed_ips)

    def show(self, interface: str) -> Optional[str]:
        if interface not in self.running:
            return None
        return f"interface: {interface}\n  public key: XXXX\n  listening port: 51820\n"

    def interfaces(self) -> List[str]:
        return sorted(self.running)

    def install_config(self, source: Path, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, dest)
        dest.chmod(0o600)
        self.installed.append((source, dest))


class RecordingGuard(LeakGuard):
    def __init__(self, events: List[str]):
        self.events = events

    def suspend(self) -> None:
        self.events.append("ipv6 off")

    def restore(self) -> None:
        self.events.append("ipv6 on")


@pytest.fixture()
def events() -> List[str]:
    return []


@pytest.fixture()
def wg(events) -> FakeWg:
    return FakeWg(events)


@pytest.fixture()
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        config_dir=tmp_path / "home" / ".simple-vpn",
        wg_dir=tmp_path / "etc" / "wireguard",
        sysctl_conf=tmp_path / "etc" / "sysctl.conf",
    )


@pytest.fixture()
def linux_profile(events, tmp_path) -> EnvironmentProfile:
    return EnvironmentProfile(
        os_family=OsFamily.LINUX_LIKE,
        egress_interface="eth0",
        nat=IptablesNat(tmp_path / "sysctl.conf"),
        leak_guard=RecordingGuard(events),
    )


@pytest.fixture()
def macos_profile(events) -> EnvironmentProfile:
    return EnvironmentProfile(
        os_family=OsFamily.BSD_LIKE,
        egress_interface="en0",
        nat=PfNat(),
        leak_guard=RecordingGuard(events),
    )


@pytest.fixture()
def make_runner():
    return FakeRunner
