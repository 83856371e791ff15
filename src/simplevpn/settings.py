# src/simplevpn/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from .errors import InvalidArguments

TOOL_NAME = "simple-vpn"
VERSION = "1.0.0"


def _env_list(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_int(env: Mapping[str, str], name: str, default: int, minimum: int = 0, maximum: Optional[int] = None) -> int:
    raw = env.get(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise InvalidArguments(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        raise InvalidArguments(f"{name} must be {bounds}, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """
    Paramètres d'une invocation. Construit une seule fois dans main()
    puis passé explicitement à chaque composant.
    """
    config_dir: Path = field(default_factory=lambda: Path.home() / ".simple-vpn")
    wg_dir: Path = Path("/etc/wireguard")
    interface: str = "wg0"

    vpn_subnet: str = "10.0.0.0/24"
    server_address: str = "10.0.0.1/24"
    listen_port: int = 51820
    client_address: str = "10.0.0.2/24"

    # Utilisé uniquement en full tunnel (évite les fuites DNS)
    dns: List[str] = field(default_factory=lambda: ["1.1.1.1"])
    keepalive: int = 25

    egress_fallback: str = "eth0"
    sysctl_conf: Path = Path("/etc/sysctl.conf")
    log_level: str = "INFO"

    @property
    def server_conf_path(self) -> Path:
        return self.wg_dir / f"{self.interface}.conf"

    @property
    def client_conf_path(self) -> Path:
        return self.config_dir / f"{self.interface}.conf"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            config_dir=Path(env.get("SIMPLE_VPN_CONFIG_DIR", str(defaults.config_dir))).expanduser(),
            wg_dir=Path(env.get("SIMPLE_VPN_WG_DIR", str(defaults.wg_dir))),
            interface=env.get("SIMPLE_VPN_INTERFACE", defaults.interface),
            vpn_subnet=env.get("SIMPLE_VPN_SUBNET", defaults.vpn_subnet),
            server_address=env.get("SIMPLE_VPN_SERVER_ADDRESS", defaults.server_address),
            listen_port=_env_int(env, "SIMPLE_VPN_PORT", defaults.listen_port, minimum=1, maximum=65535),
            client_address=env.get("SIMPLE_VPN_CLIENT_ADDRESS", defaults.client_address),
            dns=_env_list(env.get("SIMPLE_VPN_DNS", ",".join(defaults.dns))),
            keepalive=_env_int(env, "SIMPLE_VPN_KEEPALIVE", defaults.keepalive, minimum=1),
            egress_fallback=env.get("SIMPLE_VPN_EGRESS_FALLBACK", defaults.egress_fallback),
            sysctl_conf=Path(env.get("SIMPLE_VPN_SYSCTL_CONF", str(defaults.sysctl_conf))),
            log_level=env.get("SIMPLE_VPN_LOG_LEVEL", defaults.log_level).upper(),
        )
