# src/simplevpn/files.py
from __future__ import annotations

import logging
import os
import pwd
from pathlib import Path
from typing import Iterable, Mapping, Optional, Tuple

log = logging.getLogger(__name__)


def ensure_private_dir(path: Path) -> Path:
    path.mkdir(mode=0o700, parents=True, exist_ok=True)
    # mkdir respecte l'umask, on force 700
    path.chmod(0o700)
    return path


def write_private(path: Path, text: str) -> Path:
    """Écrit un fichier lisible uniquement par son propriétaire (600)."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(text)
    path.chmod(0o600)
    return path


def append_private(path: Path, text: str) -> Path:
    with path.open("a", encoding="utf-8") as f:
        f.write(text)
    path.chmod(0o600)
    return path


def invoking_user(environ: Optional[Mapping[str, str]] = None) -> Optional[Tuple[int, int]]:
    """
    (uid, gid) de l'utilisateur derrière sudo, ou None si on ne tourne pas
    en root via sudo.
    """
    env = os.environ if environ is None else environ
    name = env.get("SUDO_USER")
    if not name or os.geteuid() != 0:
        return None
    try:
        entry = pwd.getpwnam(name)
    except KeyError:
        log.warning("SUDO_USER %r has no passwd entry; leaving ownership unchanged", name)
        return None
    return entry.pw_uid, entry.pw_gid


def give_back(paths: Iterable[Path], environ: Optional[Mapping[str, str]] = None) -> None:
    """Rend à l'utilisateur appelant les fichiers créés sous sudo."""
    owner = invoking_user(environ)
    if owner is None:
        return
    uid, gid = owner
    for p in paths:
        if p.exists():
            os.chown(p, uid, gid)
