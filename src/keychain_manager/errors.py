"""Vault status codes and the semantic error taxonomy.

Vault backends report native integer statuses. ``normalize`` is the only
place those integers are interpreted; everything above the vault boundary
works with ``ErrorKind`` values and ``KeychainError`` exceptions.
"""

from __future__ import annotations

import enum


class OSStatus(enum.IntEnum):
    """Native statuses returned by the vault's point-query operations."""

    SUCCESS = 0
    UNIMPLEMENTED = -4
    DISK_FULL = -34
    IO = -36
    WRITE_PERMISSION = -49
    PARAM = -50
    ALLOCATE = -108
    USER_CANCELED = -128
    BAD_REQUEST = -909
    INTERNAL_COMPONENT = -2070
    NO_ACCESS_FOR_ITEM = -25243
    NOT_AVAILABLE = -25291
    READ_ONLY = -25292
    AUTH_FAILED = -25293
    NO_SUCH_KEYCHAIN = -25294
    INVALID_KEYCHAIN = -25295
    DUPLICATE_KEYCHAIN = -25296
    DUPLICATE_ITEM = -25299
    ITEM_NOT_FOUND = -25300
    DATA_TOO_LARGE = -25302
    NO_SUCH_ATTRIBUTE = -25303
    NO_SUCH_CLASS = -25306
    INTERACTION_NOT_ALLOWED = -25308
    READ_ONLY_ATTRIBUTE = -25309
    INTERACTION_REQUIRED = -25315
    DATA_NOT_AVAILABLE = -25316
    DATA_NOT_MODIFIABLE = -25317
    DECODE = -26275
    MISSING_ENTITLEMENT = -34018


class ErrorKind(str, enum.Enum):
    """Closed set of failure categories callers can branch on."""

    SUCCESS = "success"
    ITEM_NOT_FOUND = "item_not_found"
    DUPLICATE_ITEM = "duplicate_item"
    INVALID_DATA = "invalid_data"
    AUTH_FAILED = "auth_failed"
    INTERACTION_NOT_ALLOWED = "interaction_not_allowed"
    INTERACTION_REQUIRED = "interaction_required"
    NO_SUCH_KEYCHAIN = "no_such_keychain"
    INVALID_KEYCHAIN = "invalid_keychain"
    DUPLICATE_KEYCHAIN = "duplicate_keychain"
    NO_SUCH_ATTRIBUTE = "no_such_attribute"
    NO_SUCH_CLASS = "no_such_class"
    PARAM = "param"
    ALLOCATE = "allocate"
    IO = "io"
    DISK_FULL = "disk_full"
    WRITE_PERMISSION = "write_permission"
    READ_ONLY = "read_only"
    READ_ONLY_ATTRIBUTE = "read_only_attribute"
    NOT_AVAILABLE = "not_available"
    MISSING_ENTITLEMENT = "missing_entitlement"
    USER_CANCELED = "user_canceled"
    UNIMPLEMENTED = "unimplemented"
    BAD_REQUEST = "bad_request"
    DECODE = "decode"
    DATA_NOT_AVAILABLE = "data_not_available"
    DATA_NOT_MODIFIABLE = "data_not_modifiable"
    NO_ACCESS_FOR_ITEM = "no_access_for_item"
    INTERNAL_COMPONENT = "internal_component"
    UNEXPECTED = "unexpected"


_STATUS_KIND: dict[int, ErrorKind] = {
    OSStatus.SUCCESS: ErrorKind.SUCCESS,
    OSStatus.ITEM_NOT_FOUND: ErrorKind.ITEM_NOT_FOUND,
    OSStatus.DUPLICATE_ITEM: ErrorKind.DUPLICATE_ITEM,
    OSStatus.DATA_TOO_LARGE: ErrorKind.INVALID_DATA,
    OSStatus.AUTH_FAILED: ErrorKind.AUTH_FAILED,
    OSStatus.INTERACTION_NOT_ALLOWED: ErrorKind.INTERACTION_NOT_ALLOWED,
    OSStatus.INTERACTION_REQUIRED: ErrorKind.INTERACTION_REQUIRED,
    OSStatus.NO_SUCH_KEYCHAIN: ErrorKind.NO_SUCH_KEYCHAIN,
    OSStatus.INVALID_KEYCHAIN: ErrorKind.INVALID_KEYCHAIN,
    OSStatus.DUPLICATE_KEYCHAIN: ErrorKind.DUPLICATE_KEYCHAIN,
    OSStatus.NO_SUCH_ATTRIBUTE: ErrorKind.NO_SUCH_ATTRIBUTE,
    OSStatus.NO_SUCH_CLASS: ErrorKind.NO_SUCH_CLASS,
    OSStatus.PARAM: ErrorKind.PARAM,
    OSStatus.ALLOCATE: ErrorKind.ALLOCATE,
    OSStatus.IO: ErrorKind.IO,
    OSStatus.DISK_FULL: ErrorKind.DISK_FULL,
    OSStatus.WRITE_PERMISSION: ErrorKind.WRITE_PERMISSION,
    OSStatus.READ_ONLY: ErrorKind.READ_ONLY,
    OSStatus.READ_ONLY_ATTRIBUTE: ErrorKind.READ_ONLY_ATTRIBUTE,
    OSStatus.NOT_AVAILABLE: ErrorKind.NOT_AVAILABLE,
    OSStatus.MISSING_ENTITLEMENT: ErrorKind.MISSING_ENTITLEMENT,
    OSStatus.USER_CANCELED: ErrorKind.USER_CANCELED,
    OSStatus.UNIMPLEMENTED: ErrorKind.UNIMPLEMENTED,
    OSStatus.BAD_REQUEST: ErrorKind.BAD_REQUEST,
    OSStatus.DECODE: ErrorKind.DECODE,
    OSStatus.DATA_NOT_AVAILABLE: ErrorKind.DATA_NOT_AVAILABLE,
    OSStatus.DATA_NOT_MODIFIABLE: ErrorKind.DATA_NOT_MODIFIABLE,
    OSStatus.NO_ACCESS_FOR_ITEM: ErrorKind.NO_ACCESS_FOR_ITEM,
    OSStatus.INTERNAL_COMPONENT: ErrorKind.INTERNAL_COMPONENT,
}

_KIND_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.ITEM_NOT_FOUND: "Item not found",
    ErrorKind.DUPLICATE_ITEM: "Duplicate item",
    ErrorKind.INVALID_DATA: "Invalid data",
    ErrorKind.AUTH_FAILED: "Authorization or authentication failed",
    ErrorKind.INTERACTION_NOT_ALLOWED: "User interaction is not allowed",
    ErrorKind.NO_SUCH_KEYCHAIN: "No such keychain",
    ErrorKind.PARAM: "Invalid query parameter",
    ErrorKind.IO: "I/O error",
    ErrorKind.MISSING_ENTITLEMENT: "Missing entitlement",
}


def normalize(status: int) -> ErrorKind:
    """Map a native vault status to its semantic kind.

    Total over all integers: statuses without a dedicated kind become
    ``ErrorKind.UNEXPECTED``.
    """
    return _STATUS_KIND.get(status, ErrorKind.UNEXPECTED)


class KeychainError(Exception):
    """A failed vault operation.

    Attributes
    ----------
    kind:
        The normalized failure category.
    status:
        The native status the vault reported, kept so that
        ``ErrorKind.UNEXPECTED`` errors still carry their original code.
    """

    def __init__(self, kind: ErrorKind, status: int, message: str | None = None) -> None:
        self.kind = kind
        self.status = status
        if message is None:
            message = _KIND_MESSAGES.get(kind, kind.value.replace("_", " ").capitalize())
            if kind is ErrorKind.UNEXPECTED:
                message = f"Unexpected error - {status}"
        super().__init__(message)

    @classmethod
    def from_status(cls, status: int, message: str | None = None) -> KeychainError:
        kind = normalize(status)
        error_cls = _KIND_ERRORS.get(kind, KeychainError)
        return error_cls(kind, status, message)


class ItemNotFoundError(KeychainError):
    pass


class DuplicateItemError(KeychainError):
    pass


class InvalidDataError(KeychainError):
    @classmethod
    def because(cls, message: str) -> InvalidDataError:
        return cls(ErrorKind.INVALID_DATA, OSStatus.DECODE, message)


_KIND_ERRORS: dict[ErrorKind, type[KeychainError]] = {
    ErrorKind.ITEM_NOT_FOUND: ItemNotFoundError,
    ErrorKind.DUPLICATE_ITEM: DuplicateItemError,
    ErrorKind.INVALID_DATA: InvalidDataError,
}


def check_status(status: int) -> None:
    """Raise the matching ``KeychainError`` unless *status* is success."""
    if status != OSStatus.SUCCESS:
        raise KeychainError.from_status(status)
