# src/simplevpn/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Role(str, Enum):
    SERVER = "server"
    CLIENT = "client"


class TunnelMode(str, Enum):
    FULL = "full"    # tout le trafic passe par le VPN
    SPLIT = "split"  # seulement le sous-réseau VPN


class OsFamily(str, Enum):
    LINUX_LIKE = "linux"
    BSD_LIKE = "macos"


@dataclass(frozen=True)
class Identity:
    private_key: Optional[str] = field(repr=False)
    public_key: Optional[str]


@dataclass
class Peer:
    public_key: str
    allowed_ips: List[str]                   # ex ["10.0.0.2/32"] ou ["0.0.0.0/0", "::/0"]
    label: Optional[str] = None              # écrit en commentaire au-dessus du bloc
    endpoint: Optional[str] = None           # ex "198.51.100.4:51820" (côté client)
    persistent_keepalive: Optional[int] = None


@dataclass
class InterfaceConfig:
    role: Role
    identity: Identity
    address: str                             # ex "10.0.0.1/24"
    listen_port: Optional[int] = None        # serveur uniquement
    dns: Optional[List[str]] = None          # client en full tunnel uniquement
    post_up: Optional[str] = None
    post_down: Optional[str] = None
    peers: List[Peer] = field(default_factory=list)
