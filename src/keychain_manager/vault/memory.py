"""Process-local vault holding items in a list.

Implements the reference query semantics from ``vault.base``. Subclasses
persist the item list by overriding ``_load`` and ``_persist``.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from keychain_manager.errors import OSStatus
from keychain_manager.items import ATTR_SYNCHRONIZABLE, SYNCHRONIZABLE_ANY, VALUE_DATA
from keychain_manager.query import Query
from keychain_manager.vault.base import (
    SecretVault,
    VaultStorageError,
    is_duplicate,
    matches,
    new_item_attributes,
    shape_result,
    validate_query,
)

logger = logging.getLogger("keychain_manager.vault")

# (attributes, payload)
Item = tuple[dict[str, Any], bytes | None]


class InMemoryVault(SecretVault):
    """Stores items in memory for the lifetime of the instance."""

    def __init__(self) -> None:
        self._items: list[Item] = []

    async def _load(self) -> list[Item]:
        return self._items

    async def _persist(self, items: list[Item]) -> None:
        self._items = items

    async def add(self, query: Query) -> int:
        status = validate_query(query)
        if status != OSStatus.SUCCESS:
            return status
        if query.get(ATTR_SYNCHRONIZABLE) == SYNCHRONIZABLE_ANY:
            return OSStatus.PARAM
        try:
            items = await self._load()
            if any(is_duplicate(query, attributes) for attributes, _ in items):
                return OSStatus.DUPLICATE_ITEM
            payload = query.get(VALUE_DATA)
            await self._persist([*items, (new_item_attributes(query), payload)])
        except VaultStorageError as exc:
            logger.warning("Vault add failed: %s", exc)
            return exc.status
        return OSStatus.SUCCESS

    async def update(self, query: Query, changes: Query) -> int:
        status = validate_query(query)
        if status != OSStatus.SUCCESS:
            return status
        try:
            items = await self._load()
            updated: list[Item] = []
            found = False
            for attributes, payload in items:
                if matches(query, attributes):
                    found = True
                    attributes = {
                        **attributes,
                        **{k: v for k, v in changes.items() if k != VALUE_DATA},
                    }
                    payload = changes.get(VALUE_DATA, payload)
                updated.append((attributes, payload))
            if not found:
                return OSStatus.ITEM_NOT_FOUND
            await self._persist(updated)
        except VaultStorageError as exc:
            logger.warning("Vault update failed: %s", exc)
            return exc.status
        return OSStatus.SUCCESS

    async def delete(self, query: Query) -> int:
        status = validate_query(query)
        if status != OSStatus.SUCCESS:
            return status
        try:
            items = await self._load()
            kept = [item for item in items if not matches(query, item[0])]
            if len(kept) == len(items):
                return OSStatus.ITEM_NOT_FOUND
            await self._persist(kept)
        except VaultStorageError as exc:
            logger.warning("Vault delete failed: %s", exc)
            return exc.status
        return OSStatus.SUCCESS

    async def copy_matching(self, query: Query) -> tuple[int, Any]:
        status = validate_query(query)
        if status != OSStatus.SUCCESS:
            return status, None
        try:
            items = await self._load()
        except VaultStorageError as exc:
            logger.warning("Vault search failed: %s", exc)
            return exc.status, None
        found = [copy.deepcopy(item) for item in items if matches(query, item[0])]
        if not found:
            return OSStatus.ITEM_NOT_FOUND, None
        return OSStatus.SUCCESS, shape_result(query, found)
