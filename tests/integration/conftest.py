# tests/integration/conftest.py
import pathlib

import pytest_asyncio

from keychain_manager.manager import KeychainManager
from keychain_manager.vault import EncryptedFileVault, InMemoryVault, SQLiteVault


@pytest_asyncio.fixture(params=["memory", "encrypted_file", "sqlite"])
async def vault(request, tmp_path: pathlib.Path):
    """Each in-process backend, so every property is checked against all of them."""
    if request.param == "memory":
        yield InMemoryVault()
    elif request.param == "encrypted_file":
        yield EncryptedFileVault(tmp_path / "vault.enc", master_password="test-master-password")
    else:
        backend = SQLiteVault(tmp_path / "vault.db")
        await backend.open()
        yield backend
        await backend.close()


@pytest_asyncio.fixture
async def manager(vault) -> KeychainManager:
    return KeychainManager(vault, service="com.example.tests")
