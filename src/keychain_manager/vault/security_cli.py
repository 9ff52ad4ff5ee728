"""macOS keychain backend driven by the ``security`` CLI tool.

Stores generic-password items in the user's keychain. The CLI only
exposes service, account and label, so accessibility, synchronizable and
access group are not recorded or filtered on by this backend. Payloads are
hex-encoded into the password field so arbitrary bytes survive the trip.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

from keychain_manager.errors import OSStatus
from keychain_manager.items import (
    ATTR_ACCOUNT,
    ATTR_CLASS,
    ATTR_LABEL,
    ATTR_SERVICE,
    MATCH_LIMIT,
    MATCH_LIMIT_ALL,
    RETURN_ATTRIBUTES,
    RETURN_DATA,
    VALUE_DATA,
    ItemClass,
)
from keychain_manager.query import Query
from keychain_manager.vault.base import SecretVault

logger = logging.getLogger("keychain_manager.vault")

# The CLI exits with the low byte of the native status.
_EXIT_STATUS: dict[int, int] = {
    (status & 0xFF): status
    for status in (
        OSStatus.ITEM_NOT_FOUND,
        OSStatus.DUPLICATE_ITEM,
        OSStatus.AUTH_FAILED,
        OSStatus.NO_SUCH_KEYCHAIN,
        OSStatus.INTERACTION_NOT_ALLOWED,
        OSStatus.USER_CANCELED,
    )
}

_GENERIC = ItemClass.GENERIC.identifier
_ACCOUNT_RE = re.compile(r'"acct"<blob>="(.*?)"')
_SERVICE_RE = re.compile(r'"svce"<blob>="(.*?)"')


def status_for_exit(returncode: int) -> int:
    """Translate a ``security`` exit code back to a native status."""
    if returncode == 0:
        return OSStatus.SUCCESS
    return _EXIT_STATUS.get(returncode, returncode)


class SecurityCLIVault(SecretVault):
    """Vault backed by the macOS keychain via the ``security`` CLI.

    Parameters
    ----------
    security_binary:
        Path or name of the ``security`` executable.
    keychain_path:
        Keychain file to operate on. Defaults to the user's search list.
    """

    def __init__(self, security_binary: str = "security", keychain_path: str | None = None) -> None:
        self._binary = security_binary
        self._keychain = keychain_path

    async def _run(self, *args: str) -> tuple[int, bytes, bytes]:
        """Run a ``security`` subcommand and return (returncode, stdout, stderr)."""
        if self._keychain:
            args = (*args, self._keychain)
        proc = await asyncio.create_subprocess_exec(
            self._binary,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        return proc.returncode or 0, stdout, stderr

    def _item_args(self, query: Query) -> list[str]:
        args = ["-s", str(query.get(ATTR_SERVICE, ""))]
        if ATTR_ACCOUNT in query:
            args += ["-a", str(query[ATTR_ACCOUNT])]
        return args

    async def add(self, query: Query) -> int:
        if query.get(ATTR_CLASS) != _GENERIC:
            return OSStatus.UNIMPLEMENTED
        payload: bytes = query.get(VALUE_DATA) or b""
        args = ["add-generic-password", *self._item_args(query), "-w", payload.hex()]
        if ATTR_LABEL in query:
            args += ["-l", str(query[ATTR_LABEL])]
        returncode, _, _ = await self._run(*args)
        return status_for_exit(returncode)

    async def update(self, query: Query, changes: Query) -> int:
        if query.get(ATTR_CLASS) != _GENERIC:
            return OSStatus.UNIMPLEMENTED
        # add -U would create a missing item, so confirm it exists first.
        returncode, _, _ = await self._run("find-generic-password", *self._item_args(query))
        if returncode != 0:
            return status_for_exit(returncode)
        payload: bytes = changes.get(VALUE_DATA) or b""
        returncode, _, _ = await self._run(
            "add-generic-password", "-U", *self._item_args(query), "-w", payload.hex()
        )
        return status_for_exit(returncode)

    async def delete(self, query: Query) -> int:
        if query.get(ATTR_CLASS) != _GENERIC:
            return OSStatus.UNIMPLEMENTED
        if ATTR_ACCOUNT in query:
            returncode, _, _ = await self._run("delete-generic-password", *self._item_args(query))
            return status_for_exit(returncode)

        # The CLI deletes one match per call; repeat until nothing is left.
        deleted = 0
        while True:
            returncode, _, _ = await self._run("delete-generic-password", *self._item_args(query))
            if returncode != 0:
                break
            deleted += 1
        if deleted:
            logger.debug("Deleted %d items for service %s", deleted, query.get(ATTR_SERVICE))
            return OSStatus.SUCCESS
        return status_for_exit(returncode)

    async def copy_matching(self, query: Query) -> tuple[int, Any]:
        if query.get(ATTR_CLASS) != _GENERIC:
            return OSStatus.UNIMPLEMENTED, None
        service = str(query.get(ATTR_SERVICE, ""))

        if ATTR_ACCOUNT in query:
            account = str(query[ATTR_ACCOUNT])
            payload: bytes | None = None
            if query.get(RETURN_DATA):
                returncode, stdout, _ = await self._run(
                    "find-generic-password", *self._item_args(query), "-w"
                )
                if returncode != 0:
                    return status_for_exit(returncode), None
                try:
                    payload = bytes.fromhex(stdout.decode("utf-8", errors="replace").strip())
                except ValueError:
                    return OSStatus.DECODE, None
            else:
                returncode, _, _ = await self._run("find-generic-password", *self._item_args(query))
                if returncode != 0:
                    return status_for_exit(returncode), None
            results = [self._shape(query, service, account, payload)]
        else:
            accounts = await self._list_accounts(service)
            if accounts is None:
                return OSStatus.IO, None
            if not accounts:
                return OSStatus.ITEM_NOT_FOUND, None
            results = [self._shape(query, service, account, None) for account in accounts]

        if query.get(MATCH_LIMIT) == MATCH_LIMIT_ALL:
            return OSStatus.SUCCESS, results
        return OSStatus.SUCCESS, results[0]

    @staticmethod
    def _shape(query: Query, service: str, account: str, payload: bytes | None) -> Any:
        if query.get(RETURN_ATTRIBUTES):
            result: dict[str, Any] = {
                ATTR_CLASS: _GENERIC,
                ATTR_SERVICE: service,
                ATTR_ACCOUNT: account,
            }
            if payload is not None:
                result[VALUE_DATA] = payload
            return result
        return payload

    async def _list_accounts(self, service: str) -> list[str] | None:
        """Accounts of generic-password items for *service*, from ``dump-keychain``."""
        returncode, stdout, _ = await self._run("dump-keychain")
        if returncode != 0:
            return None

        accounts: list[str] = []
        output = stdout.decode("utf-8", errors="replace")
        # Each item block starts at its class line; svce and acct may come in either order.
        for block in re.split(r"^class: ", output, flags=re.MULTILINE)[1:]:
            if not block.startswith(f'"{_GENERIC}"'):
                continue
            service_match = _SERVICE_RE.search(block)
            account_match = _ACCOUNT_RE.search(block)
            if service_match and account_match and service_match.group(1) == service:
                if account_match.group(1) not in accounts:
                    accounts.append(account_match.group(1))
        return accounts
