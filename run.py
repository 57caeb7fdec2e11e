#!/usr/bin/env python3
"""
regnet - invoke one contract operation against the local world state

Usage:
    python run.py --list
    python run.py users requestNewUser Alice alice@example.com 555-0100 A1 --caller alice
    python run.py registrar approveNewUser Alice A1 --caller registrar
    python run.py users purchaseProperty P1 Bob B1 --caller bob --db state.db

The contract may be given by its full name or by its short alias
("users" / "registrar").
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sqlite3
import sys
from typing import Any

from dotenv import load_dotenv

from regnet.config import get_validated_config, load_config
from regnet.registry import ContractHost, EventLogger, open_store
from regnet.registry.errors import system_error

# Load environment variables (REGNET_CALLER, REGNET_CONFIG)
load_dotenv()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Invoke a property registration contract")
    parser.add_argument("contract", nargs="?", help="Contract name or alias (users, registrar)")
    parser.add_argument("method", nargs="?", help="Operation name, e.g. requestNewUser")
    parser.add_argument("args", nargs="*", help="Ordered string arguments")
    parser.add_argument(
        "--caller",
        default=os.environ.get("REGNET_CALLER"),
        help="Caller identity (default: $REGNET_CALLER)",
    )
    parser.add_argument(
        "--config",
        default=os.environ.get("REGNET_CONFIG"),
        help="Path to config YAML (default: config/config.yaml)",
    )
    parser.add_argument("--db", default=None, help="Override store.path")
    parser.add_argument(
        "--backend", choices=["memory", "sqlite"], default=None, help="Override store.backend"
    )
    parser.add_argument("--list", action="store_true", help="Print contract interfaces and exit")
    return parser.parse_args(argv)


def resolve_contract(name: str) -> str:
    """Map a short alias to the configured contract name."""
    contracts = get_validated_config().contracts
    aliases: dict[str, str] = {"users": contracts.users, "registrar": contracts.registrar}
    return aliases.get(name, name)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    load_config(args.config)
    config = get_validated_config()
    logging.basicConfig(
        level=config.logging.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    host = ContractHost(
        open_store(args.backend, args.db),
        event_logger=EventLogger.from_config(),
    )

    if args.list:
        print(json.dumps(host.get_interfaces(), indent=2))
        return 0

    if not args.contract or not args.method:
        print("contract and method are required (or use --list)", file=sys.stderr)
        return 2
    if not args.caller:
        print("--caller (or REGNET_CALLER) is required", file=sys.stderr)
        return 2

    response: dict[str, Any]
    try:
        response = host.invoke(
            resolve_contract(args.contract), args.method, args.args, args.caller
        )
    except sqlite3.OperationalError as e:
        # Lock retries exhausted; the invocation was rolled back
        response = system_error(str(e), backend=args.backend or config.store.backend)
    print(json.dumps(response, indent=2))
    return 0 if response.get("success") else 1


if __name__ == "__main__":
    sys.exit(main())
