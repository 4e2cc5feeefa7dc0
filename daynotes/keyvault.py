"""Encryption-key lifecycle.

The key is a 256-bit secret kept as 64 uppercase hex characters. It lives in
the platform keystore (via ``keyring``) with a backup copy in a plain JSON
preference file, so clearing either one on its own does not lose the data.
"""
from __future__ import annotations
from pathlib import Path
from typing import Optional, Protocol
import json
import logging
import os
import secrets

import keyring
from keyring.errors import KeyringError, NoKeyringError

from .config import KEY_STORAGE_KEY, KEYRING_SERVICE
from .crypto import KEY_BYTES
from .errors import KeyUnavailable

log = logging.getLogger(__name__)


class KeyBackendError(Exception):
    pass


class KeyBackend(Protocol):
    name: str

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class KeyringBackend:
    """Secure platform keystore (Keychain, Secret Service, Windows Credential Locker)."""

    name = "keyring"

    def __init__(self, service: str = KEYRING_SERVICE):
        self.service = service

    def get(self, key: str) -> Optional[str]:
        try:
            return keyring.get_password(self.service, key)
        except NoKeyringError:
            # no keystore on this platform, so nothing can be stored in it
            return None
        except KeyringError as e:
            raise KeyBackendError(f"keyring read failed: {type(e).__name__}") from e

    def set(self, key: str, value: str) -> None:
        try:
            keyring.set_password(self.service, key, value)
        except KeyringError as e:
            raise KeyBackendError(f"keyring write failed: {type(e).__name__}") from e


class PreferencesBackend:
    """Non-secure key/value JSON file in the application data directory."""

    name = "preferences"

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise KeyBackendError(f"cannot read preferences at {self.path}") from e
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            raise KeyBackendError(f"cannot write preferences at {self.path}") from e


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def generate_key() -> str:
    return secrets.token_bytes(KEY_BYTES).hex().upper()


class KeyVault:
    def __init__(
        self,
        secure: KeyBackend,
        fallback: KeyBackend,
        key_id: str = KEY_STORAGE_KEY,
    ):
        self.secure = secure
        self.fallback = fallback
        self.key_id = key_id

    def _read(self, backend: KeyBackend) -> tuple[Optional[str], bool]:
        """Return ``(key, readable)``; a blank entry reads as ``(None, True)``."""
        try:
            value = backend.get(self.key_id)
        except KeyBackendError as e:
            log.warning("key backend %s unreadable: %s", backend.name, e)
            return None, False
        return (None if _blank(value) else value.strip()), True

    def _try_write(self, backend: KeyBackend, key: str) -> bool:
        try:
            backend.set(self.key_id, key)
        except KeyBackendError as e:
            log.warning("key backend %s unwritable: %s", backend.name, e)
            return False
        return True

    def get_or_create_key(self) -> str:
        """Return the installation key, creating and persisting it on first use.

        A new key is generated only when both backends were read and both are
        empty. Raises KeyUnavailable when a backend that may hold the key
        cannot be read, or when a new key could not be stored anywhere.
        """
        key, secure_ok = self._read(self.secure)
        if key is not None:
            backup, backup_ok = self._read(self.fallback)
            if backup is None and backup_ok:
                log.info("backing up encryption key to %s", self.fallback.name)
                self._try_write(self.fallback, key)
            return key

        key, fallback_ok = self._read(self.fallback)
        if key is not None:
            log.info("recovered encryption key from %s", self.fallback.name)
            if secure_ok:
                self._try_write(self.secure, key)
            return key

        if not (secure_ok and fallback_ok):
            # an unreadable backend may still hold the key; a new one would replace it
            raise KeyUnavailable("encryption key storage is unreadable")

        log.info("generating new encryption key")
        key = generate_key()
        if self._try_write(self.secure, key):
            self._try_write(self.fallback, key)
            return key
        if self._try_write(self.fallback, key):
            return key
        raise KeyUnavailable("no key backend could store the encryption key")


def default_vault(preferences_file: Path) -> KeyVault:
    return KeyVault(KeyringBackend(), PreferencesBackend(preferences_file))
