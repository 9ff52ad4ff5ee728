"""Secret vault backends."""

from __future__ import annotations

import pathlib

from keychain_manager.config import VaultConfig
from keychain_manager.vault.base import SecretVault
from keychain_manager.vault.encrypted_file import EncryptedFileVault
from keychain_manager.vault.memory import InMemoryVault
from keychain_manager.vault.security_cli import SecurityCLIVault
from keychain_manager.vault.sqlite import SQLiteVault

__all__ = [
    "EncryptedFileVault",
    "InMemoryVault",
    "SQLiteVault",
    "SecretVault",
    "SecurityCLIVault",
    "create_vault",
]


def create_vault(config: VaultConfig) -> SecretVault:
    """Build the backend named by ``config.backend``."""
    if config.backend == "memory":
        return InMemoryVault()
    if config.backend == "encrypted_file":
        if not config.master_password:
            raise ValueError("vault.master_password is required for the encrypted_file backend")
        return EncryptedFileVault(pathlib.Path(config.path), config.master_password)
    if config.backend == "sqlite":
        return SQLiteVault(pathlib.Path(config.path))
    if config.backend == "security_cli":
        return SecurityCLIVault(
            security_binary=config.security_binary,
            keychain_path=config.keychain_path,
        )
    raise ValueError(f"Unknown vault backend: {config.backend!r}")
