"""Fernet-encrypted JSON file backend for the vault.

Used on Linux/Docker where no platform keychain is available. Derives an
encryption key from a master password using PBKDF2-HMAC-SHA256, then
encrypts the entire JSON item list with Fernet. Query semantics are those
of ``InMemoryVault``; only loading and persisting differ.
"""

from __future__ import annotations

import base64
import json
import pathlib

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from keychain_manager.errors import OSStatus
from keychain_manager.vault.base import VaultStorageError
from keychain_manager.vault.memory import InMemoryVault, Item

# Fixed salt -- acceptable for a local-only file where the threat model is
# casual disk access, not offline brute-force against a leaked database.
_SALT = b"keychain-manager-vault-v1"
_ITERATIONS = 480_000


def _derive_key(master_password: str) -> bytes:
    """Derive a 32-byte Fernet key from the master password via PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_SALT,
        iterations=_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(master_password.encode("utf-8")))


class EncryptedFileVault(InMemoryVault):
    """Stores vault items as a Fernet-encrypted JSON file on disk.

    Attribute values must be JSON-serializable; payloads are stored
    base64-encoded.

    Parameters
    ----------
    file_path:
        Path to the encrypted vault file. Created on first write.
    master_password:
        Password used to derive the Fernet encryption key via PBKDF2.
    """

    def __init__(self, file_path: pathlib.Path, master_password: str) -> None:
        super().__init__()
        self._path = file_path
        self._fernet = Fernet(_derive_key(master_password))

    async def _load(self) -> list[Item]:
        """Read and decrypt the vault file. Returns no items if missing."""
        try:
            if not self._path.exists():
                return []
            ciphertext = self._path.read_bytes()
        except OSError as exc:
            raise VaultStorageError(OSStatus.IO, f"Cannot read {self._path}: {exc}") from exc
        try:
            plaintext = self._fernet.decrypt(ciphertext)
        except InvalidToken as exc:
            raise VaultStorageError(
                OSStatus.AUTH_FAILED, f"Cannot decrypt {self._path}: wrong master password"
            ) from exc
        return [
            (entry["attributes"], _unpack(entry.get("data")))
            for entry in json.loads(plaintext)
        ]

    async def _persist(self, items: list[Item]) -> None:
        """Encrypt and write the items to disk."""
        entries = [
            {"attributes": attributes, "data": _pack(payload)}
            for attributes, payload in items
        ]
        try:
            plaintext = json.dumps(entries, sort_keys=True).encode("utf-8")
        except TypeError as exc:
            raise VaultStorageError(OSStatus.PARAM, f"Unserializable attribute: {exc}") from exc
        ciphertext = self._fernet.encrypt(plaintext)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_bytes(ciphertext)
        except OSError as exc:
            raise VaultStorageError(OSStatus.IO, f"Cannot write {self._path}: {exc}") from exc


def _pack(payload: bytes | None) -> str | None:
    if payload is None:
        return None
    return base64.b64encode(payload).decode("ascii")


def _unpack(data: str | None) -> bytes | None:
    if data is None:
        return None
    return base64.b64decode(data)
