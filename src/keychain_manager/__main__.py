"""keychain-manager -- command-line entry point.

Usage::

    python -m keychain_manager [--config PATH] [--verbose] COMMAND ...

Commands:
    set ACCOUNT VALUE   store a string value (updates an existing item)
    get ACCOUNT         print a stored value
    delete ACCOUNT      remove an item
    keys                list every account in the service
    attributes ACCOUNT  print the stored attributes of an item
    wipe                remove every item in the service
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from keychain_manager.config import Settings, load_settings
from keychain_manager.errors import KeychainError
from keychain_manager.items import Accessibility, ItemClass
from keychain_manager.manager import KeychainManager
from keychain_manager.vault import SQLiteVault, create_vault

logger = logging.getLogger("keychain_manager")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Parameters
    ----------
    argv:
        Argument list.  Defaults to ``sys.argv[1:]`` when ``None``.
    """
    parser = argparse.ArgumentParser(
        prog="keychain_manager",
        description="Store and retrieve secrets in a keychain-style vault",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Log vault queries (payloads are never logged)",
    )

    item_parent = argparse.ArgumentParser(add_help=False)
    item_parent.add_argument(
        "--class",
        dest="item_class",
        choices=[c.value for c in ItemClass],
        default=ItemClass.GENERIC.value,
        help="Item class (default: generic)",
    )
    item_parent.add_argument(
        "--accessibility",
        choices=[a.value for a in Accessibility],
        default=None,
        help="Accessibility level (default: looked up, or when_unlocked on save)",
    )
    item_parent.add_argument(
        "--no-sync",
        action="store_true",
        default=False,
        help="Address the device-local item instead of the synchronizable one",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    set_cmd = commands.add_parser("set", parents=[item_parent], help="Store a value")
    set_cmd.add_argument("account")
    set_cmd.add_argument("value")
    set_cmd.add_argument(
        "--no-update",
        action="store_true",
        default=False,
        help="Fail instead of replacing an existing item",
    )

    get_cmd = commands.add_parser("get", parents=[item_parent], help="Print a value")
    get_cmd.add_argument("account")

    delete_cmd = commands.add_parser("delete", parents=[item_parent], help="Delete an item")
    delete_cmd.add_argument("account")

    attributes_cmd = commands.add_parser("attributes", help="Print an item's attributes")
    attributes_cmd.add_argument("account")

    commands.add_parser("keys", help="List every account")
    commands.add_parser("wipe", help="Delete every item in the service")

    return parser.parse_args(argv)


def _accessibility(args: argparse.Namespace) -> Accessibility | None:
    return Accessibility(args.accessibility) if args.accessibility else None


async def run_command(args: argparse.Namespace, settings: Settings) -> int:
    """Execute one command against the configured vault. Returns the exit code."""
    vault = create_vault(settings.vault)
    manager = KeychainManager(
        vault,
        service=settings.keychain.service,
        access_group=settings.keychain.access_group,
    )
    try:
        if args.command == "set":
            await manager.save(
                args.value,
                ItemClass(args.item_class),
                args.account,
                accessibility=_accessibility(args) or Accessibility.WHEN_UNLOCKED,
                synchronizable=not args.no_sync,
                update_if_exists=not args.no_update,
            )
        elif args.command == "get":
            value = await manager.fetch(
                ItemClass(args.item_class),
                args.account,
                str,
                accessibility=_accessibility(args),
                synchronizable=not args.no_sync,
            )
            print(value)
        elif args.command == "delete":
            await manager.delete(
                ItemClass(args.item_class),
                args.account,
                accessibility=_accessibility(args),
                synchronizable=not args.no_sync,
            )
        elif args.command == "attributes":
            attributes = await manager.attributes_for(args.account)
            if attributes is None:
                print(f"error: no item for {args.account!r}", file=sys.stderr)
                return 1
            print(json.dumps(_printable(attributes), indent=2, sort_keys=True))
        elif args.command == "keys":
            for key in sorted(await manager.all_keys()):
                print(key)
        elif args.command == "wipe":
            await manager.wipe_all()
    except KeychainError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        if isinstance(vault, SQLiteVault):
            await vault.close()
    return 0


def _printable(attributes: dict[str, Any]) -> dict[str, Any]:
    return {
        key: value.hex() if isinstance(value, bytes) else value
        for key, value in attributes.items()
    }


# ---------------------------------------------------------------------------
# Script entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse CLI args and run one command."""
    args = parse_args(argv)
    try:
        # pydantic's ValidationError is a ValueError
        settings = load_settings(config_path=Path(args.config) if args.config else None)
    except (ValueError, yaml.YAMLError) as exc:
        print(f"error: invalid configuration: {exc}", file=sys.stderr)
        return 2

    level = logging.DEBUG if args.verbose else getattr(logging, settings.logging.level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        return asyncio.run(run_command(args, settings))
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
