# src/simplevpn/errors.py
from __future__ import annotations

from typing import Optional


class VpnError(RuntimeError):
    """Erreur fatale : la commande s'arrête, le CLI affiche message + hint."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.hint = hint


# ---------- Pré-vol (rien n'a encore été écrit) ----------

class UnsupportedPlatform(VpnError):
    pass


class MissingExternalTool(VpnError):
    pass


class InsufficientPrivilege(VpnError):
    pass


class InvalidEndpoint(VpnError):
    pass


class InvalidArguments(VpnError):
    pass


# ---------- Échecs d'exécution ----------

class KeyGenerationFailed(VpnError):
    pass


class ConfigNotFound(VpnError):
    pass


class TunnelEngineError(VpnError):
    pass
