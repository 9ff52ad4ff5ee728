"""Discovery of stored items by exhaustive point queries.

The vault has no listing or wildcard search across classes, so finding
what is stored means querying every combination of item class,
accessibility and synchronizable. Combinations are visited in a fixed
order: item class outermost, then accessibility, then synchronizable
(True before False).

A scan is not a snapshot. Items written or removed while it runs may or
may not be reported.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterator
from typing import Any

from keychain_manager.errors import ErrorKind, normalize
from keychain_manager.items import (
    ATTR_ACCESSIBLE,
    ATTR_ACCOUNT,
    MATCH_LIMIT,
    MATCH_LIMIT_ALL,
    MATCH_LIMIT_ONE,
    RETURN_ATTRIBUTES,
    SYNCHRONIZABLE_VALUES,
    Accessibility,
    ItemClass,
)
from keychain_manager.query import Query, QueryBuilder
from keychain_manager.vault.base import SecretVault

logger = logging.getLogger("keychain_manager.enumeration")


def dimension_product(
    item_class: ItemClass | None = None,
) -> Iterator[tuple[ItemClass, Accessibility, bool]]:
    """Every (class, accessibility, synchronizable) combination in scan order."""
    classes = [item_class] if item_class is not None else list(ItemClass)
    return itertools.product(classes, Accessibility, SYNCHRONIZABLE_VALUES)


class KeychainScanner:
    """Runs the combinatorial searches for one service scope.

    Worst case a scan costs ``len(ItemClass) * len(Accessibility) * 2``
    vault calls. Callers that know an item's accessibility and
    synchronizable values should query it directly instead.
    """

    def __init__(self, vault: SecretVault, builder: QueryBuilder) -> None:
        self._vault = vault
        self._builder = builder

    async def _copy(self, query: Query) -> Any:
        status, result = await self._vault.copy_matching(query)
        kind = normalize(status)
        if kind is ErrorKind.SUCCESS:
            return result
        if kind is not ErrorKind.ITEM_NOT_FOUND:
            logger.warning("Skipping scan combination after %s (status %d)", kind.value, status)
        return None

    async def attributes_for(
        self,
        account: str,
        item_class: ItemClass | None = None,
    ) -> dict[str, Any] | None:
        """Attributes of the first item stored under *account*, or None.

        When *item_class* is given only that class is searched.
        """
        for cls, accessibility, synchronizable in dimension_product(item_class):
            query = self._builder.build(cls, account, accessibility, synchronizable)
            query[RETURN_ATTRIBUTES] = True
            query[MATCH_LIMIT] = MATCH_LIMIT_ONE
            result = await self._copy(query)
            if result is not None:
                logger.debug(
                    "Found %s as %s/%s/sync=%s",
                    account, cls.value, accessibility.value, synchronizable,
                )
                return result
        return None

    async def accessibility_for(
        self,
        account: str,
        item_class: ItemClass | None = None,
    ) -> Accessibility | None:
        attributes = await self.attributes_for(account, item_class)
        if attributes is None:
            return None
        identifier = attributes.get(ATTR_ACCESSIBLE)
        if not isinstance(identifier, str):
            return None
        return Accessibility.from_identifier(identifier)

    async def all_keys(self) -> set[str]:
        """Every distinct account stored in the scope."""
        keys: set[str] = set()
        for cls, accessibility, synchronizable in dimension_product():
            query = self._builder.scope(cls, accessibility, synchronizable)
            query[RETURN_ATTRIBUTES] = True
            query[MATCH_LIMIT] = MATCH_LIMIT_ALL
            results = await self._copy(query)
            for attributes in results or []:
                account = attributes.get(ATTR_ACCOUNT) if isinstance(attributes, dict) else None
                if isinstance(account, str):
                    keys.add(account)
        return keys
