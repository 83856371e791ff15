# src/simplevpn/keys.py
from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Mapping, Optional, Tuple

from .errors import KeyGenerationFailed, MissingExternalTool
from .files import ensure_private_dir, give_back, write_private
from .models import Identity, Role
from .wireguard import KeyEngine

log = logging.getLogger(__name__)


def key_paths(role: Role, storage_path: Path) -> Tuple[Path, Path]:
    return (
        storage_path / f"{role.value}_private.key",
        storage_path / f"{role.value}_public.key",
    )


def _read_key(path: Path) -> str:
    return path.read_text(encoding="utf-8").strip()


class KeyStore:
    """
    Identité durable (paire Curve25519) par rôle. Une identité existante
    n'est jamais régénérée : supprimer les fichiers pour en créer une autre.
    """

    def __init__(self, engine: KeyEngine, environ: Optional[Mapping[str, str]] = None):
        self.engine = engine
        self._environ = environ

    def load_or_generate(self, role: Role, storage_path: Path) -> Identity:
        private_path, public_path = key_paths(role, storage_path)

        if private_path.exists():
            log.warning("%s keys already exist in %s", role.value.capitalize(), storage_path)
            log.warning("Reusing existing keys. Delete them to regenerate.")
            private_key = _read_key(private_path)
            if public_path.exists():
                public_key = _read_key(public_path)
            else:
                # clé publique perdue : on la redérive, l'identité ne change pas
                public_key = self._derive(private_key)
                write_private(public_path, public_key + "\n")
                give_back([public_path], self._environ)
            identity = Identity(private_key=private_key, public_key=public_key)
        else:
            identity = self._generate(role, storage_path, private_path, public_path)

        log.info("%s public key: %s", role.value.capitalize(), identity.public_key)
        return identity

    def _generate(self, role: Role, storage_path: Path, private_path: Path, public_path: Path) -> Identity:
        log.info("Generating %s keypair...", role.value)
        private_key = self._genkey()
        public_key = self._derive(private_key)

        ensure_private_dir(storage_path)
        write_private(private_path, private_key + "\n")
        write_private(public_path, public_key + "\n")
        give_back([storage_path, private_path, public_path], self._environ)

        log.info("%s keys generated", role.value.capitalize())
        return Identity(private_key=private_key, public_key=public_key)

    def _genkey(self) -> str:
        try:
            key = self.engine.genkey()
        except MissingExternalTool as exc:
            raise KeyGenerationFailed(f"Key generation unavailable: {exc}", hint=exc.hint) from None
        except (subprocess.CalledProcessError, OSError) as exc:
            raise KeyGenerationFailed(f"Key generation failed: {exc}") from None
        if not key:
            raise KeyGenerationFailed("Key generation returned an empty key")
        return key

    def _derive(self, private_key: str) -> str:
        try:
            key = self.engine.pubkey(private_key)
        except MissingExternalTool as exc:
            raise KeyGenerationFailed(f"Public key derivation unavailable: {exc}", hint=exc.hint) from None
        except (subprocess.CalledProcessError, OSError):
            raise KeyGenerationFailed("Public key derivation failed") from None
        if not key:
            raise KeyGenerationFailed("Public key derivation returned an empty key")
        return key
