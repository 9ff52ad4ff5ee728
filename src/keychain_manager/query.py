"""Point-query construction.

Queries are flat dictionaries of attribute key to value. Leaving a
dimension out of a query is how the vault expresses a wildcard, so the
builder only adds accessibility and access group when it has them.
"""

from __future__ import annotations

import logging
from typing import Any

from keychain_manager.items import (
    ATTR_ACCESS_GROUP,
    ATTR_ACCESSIBLE,
    ATTR_ACCOUNT,
    ATTR_CLASS,
    ATTR_SERVICE,
    ATTR_SYNCHRONIZABLE,
    SYNCHRONIZABLE_ANY,
    VALUE_DATA,
    Accessibility,
    ItemClass,
)

logger = logging.getLogger("keychain_manager.query")

Query = dict[str, Any]

# A bool, or SYNCHRONIZABLE_ANY to match both.
Synchronizable = bool | str


def redacted(query: Query) -> Query:
    """Return a copy of *query* that is safe to log."""
    if VALUE_DATA not in query:
        return dict(query)
    return {**query, VALUE_DATA: "<redacted>"}


class QueryBuilder:
    """Builds queries scoped to one service and optional access group.

    Parameters
    ----------
    service:
        Namespace for every record this builder addresses.
    access_group:
        Cross-process sharing scope. Added to every query when set.
    """

    def __init__(self, service: str, access_group: str | None = None) -> None:
        self._service = service
        self._access_group = access_group

    @property
    def service(self) -> str:
        return self._service

    @property
    def access_group(self) -> str | None:
        return self._access_group

    def build(
        self,
        item_class: ItemClass,
        account: str,
        accessibility: Accessibility | None = None,
        synchronizable: Synchronizable = True,
        attributes: dict[str, Any] | None = None,
    ) -> Query:
        """Build a query addressing *account* within the service.

        *attributes* are merged last and may replace any key set here,
        including service, account and class. Callers use this to reach
        records the standard dimensions cannot express.
        """
        query: Query = {
            ATTR_SERVICE: self._service,
            ATTR_ACCOUNT: account,
            ATTR_CLASS: item_class.identifier,
        }
        self._add_dimensions(query, accessibility, synchronizable)
        if attributes:
            query.update(attributes)
        logger.debug("Built query %s", redacted(query))
        return query

    def scope(
        self,
        item_class: ItemClass,
        accessibility: Accessibility | None = None,
        synchronizable: Synchronizable = True,
    ) -> Query:
        """Build a query covering every account of *item_class* in the service."""
        query: Query = {
            ATTR_SERVICE: self._service,
            ATTR_CLASS: item_class.identifier,
        }
        self._add_dimensions(query, accessibility, synchronizable)
        return query

    def _add_dimensions(
        self,
        query: Query,
        accessibility: Accessibility | None,
        synchronizable: Synchronizable,
    ) -> None:
        if self._access_group is not None:
            query[ATTR_ACCESS_GROUP] = self._access_group
        if accessibility is not None:
            query[ATTR_ACCESSIBLE] = accessibility.identifier
        if synchronizable == SYNCHRONIZABLE_ANY:
            query[ATTR_SYNCHRONIZABLE] = SYNCHRONIZABLE_ANY
        else:
            query[ATTR_SYNCHRONIZABLE] = bool(synchronizable)
