"""Classification dimensions and vault attribute identifiers.

Item classes and accessibility levels are closed sets. Each member maps to
the fixed identifier the vault uses in its query dictionaries; the mapping
is explicit in both directions so callers never pass raw strings around.
"""

from __future__ import annotations

import enum

# ---------------------------------------------------------------------------
# Query dictionary keys
# ---------------------------------------------------------------------------

ATTR_CLASS = "class"
ATTR_SERVICE = "svce"
ATTR_ACCOUNT = "acct"
ATTR_ACCESSIBLE = "pdmn"
ATTR_SYNCHRONIZABLE = "sync"
ATTR_ACCESS_GROUP = "agrp"
ATTR_LABEL = "labl"

VALUE_DATA = "v_Data"

RETURN_ATTRIBUTES = "r_Attributes"
RETURN_DATA = "r_Data"

MATCH_LIMIT = "m_Limit"
MATCH_LIMIT_ONE = "m_LimitOne"
MATCH_LIMIT_ALL = "m_LimitAll"

# Matches both synchronizable and device-local items. Only meaningful in
# search and delete queries.
SYNCHRONIZABLE_ANY = "syna"


# ---------------------------------------------------------------------------
# Item classes
# ---------------------------------------------------------------------------

class ItemClass(str, enum.Enum):
    """Kind of record stored in the vault. Part of its uniqueness key."""

    GENERIC = "generic"
    CERTIFICATE = "certificate"
    PASSWORD = "password"
    IDENTITY = "identity"
    CRYPTOGRAPHY = "cryptography"

    @property
    def identifier(self) -> str:
        return _ITEM_CLASS_IDENTIFIERS[self]

    @classmethod
    def from_identifier(cls, identifier: str) -> ItemClass | None:
        return _ITEM_CLASSES_BY_IDENTIFIER.get(identifier)


_ITEM_CLASS_IDENTIFIERS: dict[ItemClass, str] = {
    ItemClass.GENERIC: "genp",
    ItemClass.CERTIFICATE: "cert",
    ItemClass.PASSWORD: "inet",
    ItemClass.IDENTITY: "idnt",
    ItemClass.CRYPTOGRAPHY: "keys",
}

_ITEM_CLASSES_BY_IDENTIFIER: dict[str, ItemClass] = {
    identifier: item_class for item_class, identifier in _ITEM_CLASS_IDENTIFIERS.items()
}


# ---------------------------------------------------------------------------
# Accessibility
# ---------------------------------------------------------------------------

class Accessibility(str, enum.Enum):
    """When the vault allows a record to be read.

    Not part of the vault's uniqueness key, but part of its default lookup
    key. A record saved under one level cannot be updated through a query
    naming another.
    """

    # Readable after the first unlock following a restart. Included in
    # encrypted backups.
    AFTER_FIRST_UNLOCK = "after_first_unlock"
    # As above, excluded from backups.
    AFTER_FIRST_UNLOCK_THIS_DEVICE_ONLY = "after_first_unlock_this_device_only"
    # Readable while the device is unlocked. The vault's default.
    WHEN_UNLOCKED = "when_unlocked"
    # As above, excluded from backups.
    WHEN_UNLOCKED_THIS_DEVICE_ONLY = "when_unlocked_this_device_only"
    # Requires a passcode; removed together with the passcode.
    WHEN_PASSCODE_SET_THIS_DEVICE_ONLY = "when_passcode_set_this_device_only"

    @property
    def identifier(self) -> str:
        return _ACCESSIBILITY_IDENTIFIERS[self]

    @classmethod
    def from_identifier(cls, identifier: str) -> Accessibility | None:
        return _ACCESSIBILITY_BY_IDENTIFIER.get(identifier)


_ACCESSIBILITY_IDENTIFIERS: dict[Accessibility, str] = {
    Accessibility.AFTER_FIRST_UNLOCK: "ck",
    Accessibility.AFTER_FIRST_UNLOCK_THIS_DEVICE_ONLY: "cku",
    Accessibility.WHEN_UNLOCKED: "ak",
    Accessibility.WHEN_UNLOCKED_THIS_DEVICE_ONLY: "aku",
    Accessibility.WHEN_PASSCODE_SET_THIS_DEVICE_ONLY: "akpu",
}

_ACCESSIBILITY_BY_IDENTIFIER: dict[str, Accessibility] = {
    identifier: level for level, identifier in _ACCESSIBILITY_IDENTIFIERS.items()
}

# Scan order for the synchronizable dimension.
SYNCHRONIZABLE_VALUES: tuple[bool, bool] = (True, False)
