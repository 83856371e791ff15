# src/simplevpn/export.py
from __future__ import annotations

from pathlib import Path

import qrcode

from .files import ensure_private_dir


def write_config_qr(conf_text: str, path: Path) -> Path:
    """
    QR code PNG d'une config client, importable par les applis mobiles
    WireGuard. Le QR contient la clé privée : fichier en 600.
    """
    if not path.parent.exists():
        ensure_private_dir(path.parent)
    img = qrcode.make(conf_text)
    img.save(str(path))
    path.chmod(0o600)
    return path
