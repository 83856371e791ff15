# src/simplevpn/conf.py
"""
Lecture / écriture des fichiers de configuration wg-quick.

Le document commence toujours par un en-tête de provenance, suivi d'une
section [Interface] puis d'une section [Peer] par pair, dans l'ordre.
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .files import ensure_private_dir, write_private
from .models import Identity, InterfaceConfig, Peer, Role
from .settings import TOOL_NAME

RULE = "# " + "=" * 77
PEERS_MARKER = "# --- Peers are added below (one block per client) ---"


# ---------- Rendu ----------

def render_header(role: Role, generated_at: Optional[datetime] = None, tool: str = TOOL_NAME) -> List[str]:
    ts = (generated_at or datetime.now(timezone.utc)).isoformat(timespec="seconds")
    return [
        RULE,
        f"# WireGuard {role.value.capitalize()} Configuration",
        f"# Generated by {tool} on {ts}",
        RULE,
    ]


def render_peer_section(peer: Peer) -> str:
    lines = ["[Peer]"]
    if peer.label:
        lines.append("# " + " ".join(peer.label.split()))
    lines.append(f"PublicKey = {peer.public_key}")
    if peer.endpoint:
        lines.append(f"Endpoint = {peer.endpoint}")
    lines.append(f"AllowedIPs = {', '.join(peer.allowed_ips)}")
    if peer.persistent_keepalive is not None:
        lines.append(f"PersistentKeepalive = {peer.persistent_keepalive}")
    return "\n".join(lines) + "\n"


def render_conf(
    config: InterfaceConfig,
    generated_at: Optional[datetime] = None,
    tool: str = TOOL_NAME,
) -> str:
    lines = render_header(config.role, generated_at, tool)
    lines += [
        "",
        "[Interface]",
        f"PrivateKey = {config.identity.private_key}",
        f"Address = {config.address}",
    ]
    if config.listen_port is not None:
        lines.append(f"ListenPort = {config.listen_port}")
    if config.dns:
        lines.append(f"DNS = {', '.join(config.dns)}")
    if config.post_up:
        lines.append(f"PostUp = {config.post_up}")
    if config.post_down:
        lines.append(f"PostDown = {config.post_down}")
    if config.role is Role.SERVER:
        lines += ["", PEERS_MARKER]

    text = "\n".join(lines) + "\n"
    for p in config.peers:
        text += "\n" + render_peer_section(p)
    return text


def write_conf(path: Path, text: str) -> Path:
    if not path.parent.exists():
        ensure_private_dir(path.parent)
    return write_private(path, text)


# ---------- Lecture ----------

def _split_list(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def parse_conf(text: str, role: Optional[Role] = None) -> InterfaceConfig:
    """
    Relit un document wg-quick. Les commentaires sont ignorés, sauf celui qui
    suit directement un en-tête [Peer] (le label). La clé publique locale
    n'est pas dans le fichier : identity.public_key vaut None.
    """
    iface: dict = {}
    peers: List[Peer] = []
    section = None
    label_slot = False

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith("#"):
            if section == "peer" and label_slot:
                peers[-1].label = line.lstrip("#").strip() or None
            label_slot = False
            continue
        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1].strip().lower()
            if section == "peer":
                peers.append(Peer(public_key="", allowed_ips=[]))
                label_slot = True
            continue

        label_slot = False
        key, sep, value = line.partition("=")
        if not sep:
            raise ValueError(f"Malformed line in config: {line!r}")
        key, value = key.strip().lower(), value.strip()

        if section == "interface":
            iface[key] = value
        elif section == "peer":
            p = peers[-1]
            if key == "publickey":
                p.public_key = value
            elif key == "allowedips":
                p.allowed_ips = _split_list(value)
            elif key == "endpoint":
                p.endpoint = value
            elif key == "persistentkeepalive":
                p.persistent_keepalive = int(value)
        else:
            raise ValueError(f"Key outside of any section: {key!r}")

    listen_port = int(iface["listenport"]) if "listenport" in iface else None
    if role is None:
        role = Role.SERVER if listen_port is not None else Role.CLIENT

    return InterfaceConfig(
        role=role,
        identity=Identity(private_key=iface.get("privatekey"), public_key=None),
        address=iface.get("address", ""),
        listen_port=listen_port,
        dns=_split_list(iface["dns"]) if "dns" in iface else None,
        post_up=iface.get("postup"),
        post_down=iface.get("postdown"),
        peers=peers,
    )
