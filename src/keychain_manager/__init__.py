"""keychain-manager -- credential storage over point-query secret vaults."""

from pathlib import Path as _Path

from keychain_manager.codec import JSONCodec, RecordCodec
from keychain_manager.errors import (
    DuplicateItemError,
    ErrorKind,
    InvalidDataError,
    ItemNotFoundError,
    KeychainError,
    normalize,
)
from keychain_manager.items import Accessibility, ItemClass
from keychain_manager.manager import KeychainManager

def _read_version() -> str:
    """Read version from the repo-level VERSION file (single source of truth)."""
    # Walk up from this file to find the VERSION file at repo root
    for parent in _Path(__file__).resolve().parents:
        candidate = parent / "VERSION"
        if candidate.is_file():
            return candidate.read_text().strip()
    return "0.0.0"

__version__ = _read_version()

__all__ = [
    "Accessibility",
    "DuplicateItemError",
    "ErrorKind",
    "InvalidDataError",
    "ItemClass",
    "ItemNotFoundError",
    "JSONCodec",
    "KeychainError",
    "KeychainManager",
    "RecordCodec",
    "normalize",
]
