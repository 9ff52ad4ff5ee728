"""Credential store on top of a point-query secret vault.

``KeychainManager`` turns save/fetch/update/delete calls into vault
queries for one service and optional access group.

The vault checks duplicates on add using (service, account, class) but
looks items up on update using every dimension, accessibility and
synchronizable included. ``save`` reconciles the two: a duplicate on add
falls back to update, and an update that then finds nothing deletes the
stale item under the narrow key and adds again, once.

Nothing here is atomic across vault calls. Two writers saving the same
account concurrently can interleave between the recovery delete and the
re-add, leaving either writer's value (or a duplicate error) behind.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from keychain_manager.codec import JSONCodec, RecordCodec
from keychain_manager.enumeration import KeychainScanner
from keychain_manager.errors import (
    DuplicateItemError,
    ErrorKind,
    InvalidDataError,
    ItemNotFoundError,
    check_status,
    normalize,
)
from keychain_manager.items import (
    ATTR_ACCESS_GROUP,
    ATTR_SYNCHRONIZABLE,
    MATCH_LIMIT,
    MATCH_LIMIT_ONE,
    RETURN_ATTRIBUTES,
    RETURN_DATA,
    SYNCHRONIZABLE_ANY,
    VALUE_DATA,
    Accessibility,
    ItemClass,
)
from keychain_manager.query import QueryBuilder, Synchronizable
from keychain_manager.vault.base import CONTROL_KEYS, UNIQUENESS_KEYS, SecretVault

logger = logging.getLogger("keychain_manager.manager")

T = TypeVar("T")


class KeychainManager:
    """Saves, fetches, updates, deletes and enumerates items for one service.

    Parameters
    ----------
    vault:
        The backing secret vault.
    service:
        Namespace for every item this manager touches.
    access_group:
        Optional sharing scope added to every query.
    codec:
        Converts values to payload bytes. Defaults to ``JSONCodec``.
    """

    def __init__(
        self,
        vault: SecretVault,
        service: str,
        access_group: str | None = None,
        codec: RecordCodec | None = None,
    ) -> None:
        self._vault = vault
        self._builder = QueryBuilder(service, access_group)
        self._scanner = KeychainScanner(vault, self._builder)
        self._codec = codec or JSONCodec()

    @property
    def service(self) -> str:
        return self._builder.service

    @property
    def access_group(self) -> str | None:
        return self._builder.access_group

    # ------------------------------------------------------------------
    # Save (upsert)
    # ------------------------------------------------------------------

    async def save(
        self,
        value: Any,
        item_class: ItemClass,
        account: str,
        *,
        accessibility: Accessibility = Accessibility.WHEN_UNLOCKED,
        synchronizable: bool = True,
        update_if_exists: bool = True,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """Store *value* under *account*, replacing an existing item.

        Raises ``DuplicateItemError`` when the item exists and
        *update_if_exists* is False.
        """
        payload = self._codec.encode(value)
        await self._save_payload(
            payload,
            item_class,
            account,
            accessibility,
            synchronizable,
            update_if_exists,
            attributes,
            allow_recovery=True,
        )

    async def _save_payload(
        self,
        payload: bytes,
        item_class: ItemClass,
        account: str,
        accessibility: Accessibility,
        synchronizable: bool,
        update_if_exists: bool,
        attributes: dict[str, Any] | None,
        allow_recovery: bool,
    ) -> None:
        query = self._builder.build(item_class, account, accessibility, synchronizable, attributes)
        query[VALUE_DATA] = payload
        try:
            check_status(await self._vault.add(query))
            return
        except DuplicateItemError:
            if not update_if_exists:
                raise

        try:
            await self._update_payload(
                payload, item_class, account, accessibility, synchronizable, attributes
            )
            return
        except ItemNotFoundError:
            # Same (service, account, class) exists under other dimensions.
            if not allow_recovery:
                raise
            logger.info(
                "Replacing %s/%s saved with different accessibility or sync",
                item_class.value, account,
            )

        # Narrow key of the item the add collided with, caller overrides included.
        stale = {key: query[key] for key in (*UNIQUENESS_KEYS, ATTR_ACCESS_GROUP) if key in query}
        stale[ATTR_SYNCHRONIZABLE] = SYNCHRONIZABLE_ANY
        check_status(await self._vault.delete(stale))
        await self._save_payload(
            payload,
            item_class,
            account,
            accessibility,
            synchronizable,
            update_if_exists,
            attributes,
            allow_recovery=False,
        )

    # ------------------------------------------------------------------
    # Fetch / update / delete
    # ------------------------------------------------------------------

    async def fetch(
        self,
        item_class: ItemClass,
        account: str,
        value_type: type[T] = Any,  # type: ignore[assignment]
        *,
        accessibility: Accessibility | None = None,
        synchronizable: bool = True,
        attributes: dict[str, Any] | None = None,
    ) -> T:
        """Return the value stored under *account*, decoded as *value_type*.

        Without *accessibility* the item is looked up first, which costs a
        scan over the accessibility and synchronizable combinations.
        """
        if accessibility is None:
            accessibility = (
                await self._scanner.accessibility_for(account, item_class)
                or Accessibility.WHEN_UNLOCKED
            )
        query = self._builder.build(item_class, account, accessibility, synchronizable, attributes)
        query[RETURN_ATTRIBUTES] = True
        query[RETURN_DATA] = True
        query[MATCH_LIMIT] = MATCH_LIMIT_ONE

        status, result = await self._vault.copy_matching(query)
        check_status(status)
        if not isinstance(result, dict) or not isinstance(result.get(VALUE_DATA), bytes):
            raise InvalidDataError.because(f"Item {account!r} has no payload")
        return self._codec.decode(result[VALUE_DATA], value_type)

    async def update(
        self,
        item_class: ItemClass,
        account: str,
        value: Any,
        *,
        accessibility: Accessibility = Accessibility.WHEN_UNLOCKED,
        synchronizable: bool = True,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """Replace the payload of the item matching every given dimension.

        Raises ``ItemNotFoundError`` when no item matches exactly.
        """
        await self._update_payload(
            self._codec.encode(value), item_class, account, accessibility, synchronizable, attributes
        )

    async def _update_payload(
        self,
        payload: bytes,
        item_class: ItemClass,
        account: str,
        accessibility: Accessibility,
        synchronizable: bool,
        attributes: dict[str, Any] | None,
    ) -> None:
        query = self._builder.build(item_class, account, accessibility, synchronizable, attributes)
        check_status(await self._vault.update(query, {VALUE_DATA: payload}))

    async def delete(
        self,
        item_class: ItemClass,
        account: str,
        *,
        accessibility: Accessibility | None = None,
        synchronizable: Synchronizable = True,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """Delete the item stored under *account*.

        Without *accessibility* the stored item's attributes are looked
        up and merged into the query so it matches exactly; if nothing is
        found the query leaves accessibility open. Raises the vault's
        error, ``ItemNotFoundError`` included.
        """
        discovered: dict[str, Any] | None = None
        if accessibility is None:
            discovered = await self._scanner.attributes_for(account, item_class)
        query = self._builder.build(item_class, account, accessibility, synchronizable, attributes)
        if discovered:
            query.update({k: v for k, v in discovered.items() if k not in CONTROL_KEYS})
        check_status(await self._vault.delete(query))

    async def wipe_all(self) -> None:
        """Delete every item of every class in this manager's scope.

        Best effort: a class that fails to delete (including one with no
        items) is logged and skipped.
        """
        for item_class in ItemClass:
            query = self._builder.scope(item_class, synchronizable=SYNCHRONIZABLE_ANY)
            status = await self._vault.delete(query)
            kind = normalize(status)
            if kind is ErrorKind.ITEM_NOT_FOUND:
                logger.debug("Nothing to wipe for %s", item_class.value)
            elif kind is not ErrorKind.SUCCESS:
                logger.warning("Wipe of %s failed: %s (status %d)", item_class.value, kind.value, status)

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    async def attributes_for(
        self, account: str, item_class: ItemClass | None = None
    ) -> dict[str, Any] | None:
        return await self._scanner.attributes_for(account, item_class)

    async def accessibility_for(
        self, account: str, item_class: ItemClass | None = None
    ) -> Accessibility | None:
        return await self._scanner.accessibility_for(account, item_class)

    async def all_keys(self) -> set[str]:
        return await self._scanner.all_keys()
