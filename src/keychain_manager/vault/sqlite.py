"""SQLite-backed vault.

Each item is one row. The class, service and account columns narrow the
candidate rows in SQL; the full attribute match runs in Python with the
shared rules from ``vault.base`` so every backend agrees on semantics.
"""

from __future__ import annotations

import json
import logging
import pathlib
from typing import Any

import aiosqlite

from keychain_manager.errors import OSStatus
from keychain_manager.items import (
    ATTR_ACCOUNT,
    ATTR_CLASS,
    ATTR_SERVICE,
    ATTR_SYNCHRONIZABLE,
    SYNCHRONIZABLE_ANY,
    VALUE_DATA,
)
from keychain_manager.query import Query
from keychain_manager.vault.base import (
    SecretVault,
    matches,
    new_item_attributes,
    shape_result,
    validate_query,
)

logger = logging.getLogger("keychain_manager.vault")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS vault_items (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    item_class  TEXT NOT NULL,
    service     TEXT,
    account     TEXT,
    attributes  TEXT NOT NULL,
    data        BLOB,
    created_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
CREATE INDEX IF NOT EXISTS idx_vault_items_lookup
    ON vault_items (item_class, service, account);
"""


class SQLiteVault(SecretVault):
    """Stores vault items in an SQLite database.

    Parameters
    ----------
    db_path:
        Database file, or ``":memory:"``. Parent directories are created
        on open.

    Use as an async context manager, or call ``open()`` and ``close()``.
    """

    def __init__(self, db_path: pathlib.Path | str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def open(self) -> aiosqlite.Connection:
        """Connect and create the schema if needed. Returns the connection."""
        if self._db is None:
            if str(self._db_path) != ":memory:":
                pathlib.Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(str(self._db_path))
            await db.executescript(_SCHEMA)
            await db.commit()
            self._db = db
        return self._db

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> SQLiteVault:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


    async def _candidates(self, query: Query) -> list[tuple[int, dict[str, Any], bytes | None]]:
        """Rows whose indexed columns agree with *query*."""
        db = await self.open()
        sql = "SELECT id, attributes, data FROM vault_items WHERE item_class = ?"
        params: list[Any] = [query[ATTR_CLASS]]
        for column, key in (("service", ATTR_SERVICE), ("account", ATTR_ACCOUNT)):
            if key in query:
                sql += f" AND {column} IS ?"
                params.append(query[key])
        cursor = await db.execute(sql + " ORDER BY id ASC", params)
        rows = await cursor.fetchall()
        return [(row[0], json.loads(row[1]), row[2]) for row in rows]

    async def _matching_ids(self, query: Query) -> list[int]:
        return [row_id for row_id, attributes, _ in await self._candidates(query) if matches(query, attributes)]

    async def add(self, query: Query) -> int:
        status = validate_query(query)
        if status != OSStatus.SUCCESS:
            return status
        if query.get(ATTR_SYNCHRONIZABLE) == SYNCHRONIZABLE_ANY:
            return OSStatus.PARAM
        try:
            attributes_json = json.dumps(new_item_attributes(query), sort_keys=True)
        except TypeError:
            return OSStatus.PARAM
        try:
            db = await self.open()
            cursor = await db.execute(
                "SELECT 1 FROM vault_items WHERE item_class = ? AND service IS ? AND account IS ?",
                (query[ATTR_CLASS], query.get(ATTR_SERVICE), query.get(ATTR_ACCOUNT)),
            )
            if await cursor.fetchone() is not None:
                return OSStatus.DUPLICATE_ITEM
            await db.execute(
                "INSERT INTO vault_items (item_class, service, account, attributes, data) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    query[ATTR_CLASS],
                    query.get(ATTR_SERVICE),
                    query.get(ATTR_ACCOUNT),
                    attributes_json,
                    query.get(VALUE_DATA),
                ),
            )
            await db.commit()
        except aiosqlite.Error as exc:
            logger.warning("SQLite vault add failed: %s", exc)
            return OSStatus.IO
        return OSStatus.SUCCESS

    async def update(self, query: Query, changes: Query) -> int:
        status = validate_query(query)
        if status != OSStatus.SUCCESS:
            return status
        try:
            db = await self.open()
            candidates = await self._candidates(query)
        except aiosqlite.Error as exc:
            logger.warning("SQLite vault update failed: %s", exc)
            return OSStatus.IO

        rows: list[tuple[str, bytes | None, int]] = []
        for row_id, attributes, payload in candidates:
            if not matches(query, attributes):
                continue
            attributes.update({k: v for k, v in changes.items() if k != VALUE_DATA})
            try:
                attributes_json = json.dumps(attributes, sort_keys=True)
            except TypeError:
                return OSStatus.PARAM
            rows.append((attributes_json, changes.get(VALUE_DATA, payload), row_id))
        if not rows:
            return OSStatus.ITEM_NOT_FOUND

        # All matching rows change together or not at all.
        try:
            await db.executemany(
                "UPDATE vault_items SET attributes = ?, data = ?, "
                "updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ?",
                rows,
            )
            await db.commit()
        except aiosqlite.Error as exc:
            logger.warning("SQLite vault update failed: %s", exc)
            await db.rollback()
            return OSStatus.IO
        return OSStatus.SUCCESS

    async def delete(self, query: Query) -> int:
        status = validate_query(query)
        if status != OSStatus.SUCCESS:
            return status
        try:
            ids = await self._matching_ids(query)
            if not ids:
                return OSStatus.ITEM_NOT_FOUND
            db = await self.open()
            await db.executemany("DELETE FROM vault_items WHERE id = ?", [(row_id,) for row_id in ids])
            await db.commit()
        except aiosqlite.Error as exc:
            logger.warning("SQLite vault delete failed: %s", exc)
            return OSStatus.IO
        return OSStatus.SUCCESS

    async def copy_matching(self, query: Query) -> tuple[int, Any]:
        status = validate_query(query)
        if status != OSStatus.SUCCESS:
            return status, None
        try:
            candidates = await self._candidates(query)
        except aiosqlite.Error as exc:
            logger.warning("SQLite vault search failed: %s", exc)
            return OSStatus.IO, None
        found = [(attributes, payload) for _, attributes, payload in candidates if matches(query, attributes)]
        if not found:
            return OSStatus.ITEM_NOT_FOUND, None
        return OSStatus.SUCCESS, shape_result(query, found)
