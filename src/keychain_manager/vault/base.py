"""Abstract interface for the secret vault and shared matching rules.

The vault is a point-query service: it can add one item, update or delete
the items a query matches, and copy out one or all matching items. It
cannot list its contents. Every operation returns a native ``OSStatus``
integer; interpreting it is left to ``keychain_manager.errors``.

The helper functions below implement the vault's query semantics for the
in-process backends (memory, encrypted file, SQLite).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from keychain_manager.errors import OSStatus
from keychain_manager.items import (
    ATTR_ACCESSIBLE,
    ATTR_ACCOUNT,
    ATTR_CLASS,
    ATTR_SERVICE,
    ATTR_SYNCHRONIZABLE,
    MATCH_LIMIT,
    MATCH_LIMIT_ALL,
    MATCH_LIMIT_ONE,
    RETURN_ATTRIBUTES,
    RETURN_DATA,
    SYNCHRONIZABLE_ANY,
    VALUE_DATA,
    Accessibility,
    ItemClass,
)
from keychain_manager.query import Query

# Keys that steer an operation rather than describe an item.
CONTROL_KEYS = frozenset({RETURN_ATTRIBUTES, RETURN_DATA, MATCH_LIMIT, VALUE_DATA})

# Attributes the vault compares when deciding whether an add is a duplicate.
UNIQUENESS_KEYS: tuple[str, ...] = (ATTR_SERVICE, ATTR_ACCOUNT, ATTR_CLASS)

DEFAULT_ACCESSIBLE = Accessibility.WHEN_UNLOCKED.identifier


class SecretVault(ABC):
    """Abstract secret vault. Implementations provide platform-specific storage.

    All methods are async to support both I/O-bound backends (file,
    database) and subprocess-based backends (macOS ``security`` CLI).
    """

    @abstractmethod
    async def add(self, query: Query) -> int:
        """Insert one item described by *query*, payload under ``v_Data``."""

    @abstractmethod
    async def update(self, query: Query, changes: Query) -> int:
        """Apply *changes* to every item *query* matches."""

    @abstractmethod
    async def delete(self, query: Query) -> int:
        """Remove every item *query* matches."""

    @abstractmethod
    async def copy_matching(self, query: Query) -> tuple[int, Any]:
        """Return ``(status, result)`` for the items *query* matches.

        The result shape follows the query's return and limit keys: an
        attribute dict (with ``v_Data`` when data is requested too), bare
        payload bytes when only data is requested, or a list of either
        for ``m_LimitAll``. The result is ``None`` on failure.
        """


class VaultStorageError(Exception):
    """Raised by a backend's storage layer; carries the status to report."""

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        super().__init__(message)


# ---------------------------------------------------------------------------
# Query semantics shared by the in-process backends
# ---------------------------------------------------------------------------

def validate_query(query: Query) -> int:
    """Return ``PARAM`` for queries the vault would reject, else ``SUCCESS``."""
    item_class = query.get(ATTR_CLASS)
    if not isinstance(item_class, str) or ItemClass.from_identifier(item_class) is None:
        return OSStatus.PARAM
    accessible = query.get(ATTR_ACCESSIBLE)
    if accessible is not None and Accessibility.from_identifier(accessible) is None:
        return OSStatus.PARAM
    sync = query.get(ATTR_SYNCHRONIZABLE, False)
    if not isinstance(sync, bool) and sync != SYNCHRONIZABLE_ANY:
        return OSStatus.PARAM
    limit = query.get(MATCH_LIMIT, MATCH_LIMIT_ONE)
    if limit not in (MATCH_LIMIT_ONE, MATCH_LIMIT_ALL):
        return OSStatus.PARAM
    return OSStatus.SUCCESS


def search_attributes(query: Query) -> dict[str, Any]:
    """Strip control keys, leaving the attributes an item must match."""
    return {key: value for key, value in query.items() if key not in CONTROL_KEYS}


def new_item_attributes(query: Query) -> dict[str, Any]:
    """Attributes recorded for an item added with *query*."""
    attributes = search_attributes(query)
    attributes.setdefault(ATTR_ACCESSIBLE, DEFAULT_ACCESSIBLE)
    attributes.setdefault(ATTR_SYNCHRONIZABLE, False)
    return attributes


def is_duplicate(query: Query, attributes: dict[str, Any]) -> bool:
    return all(query.get(key) == attributes.get(key) for key in UNIQUENESS_KEYS)


def matches(query: Query, attributes: dict[str, Any]) -> bool:
    """Whether an item with *attributes* satisfies *query*.

    A missing ``sync`` key only matches device-local items; ``syna``
    matches either. Every other key must be present and equal.
    """
    wanted = search_attributes(query)
    sync = wanted.pop(ATTR_SYNCHRONIZABLE, False)
    if sync != SYNCHRONIZABLE_ANY and attributes.get(ATTR_SYNCHRONIZABLE, False) != sync:
        return False
    for key, value in wanted.items():
        if key not in attributes or attributes[key] != value:
            return False
    return True


def shape_result(query: Query, items: list[tuple[dict[str, Any], bytes | None]]) -> Any:
    """Build the ``copy_matching`` result for the matched *items*.

    *items* holds ``(attributes, payload)`` pairs and must not be empty.
    """
    want_attributes = bool(query.get(RETURN_ATTRIBUTES))
    want_data = bool(query.get(RETURN_DATA))

    def _one(attributes: dict[str, Any], payload: bytes | None) -> Any:
        if want_attributes:
            result = dict(attributes)
            if want_data and payload is not None:
                result[VALUE_DATA] = payload
            return result
        if want_data:
            return payload
        return None

    if query.get(MATCH_LIMIT) == MATCH_LIMIT_ALL:
        return [_one(attributes, payload) for attributes, payload in items]
    return _one(*items[0])
