"""Operator commands. Usage: python -m inputhaven.manage create-api-key <account-email> [--name NAME]

The management API only accepts existing keys, so an account's first key is issued here."""

import argparse
import asyncio

from inputhaven.core.config import get_settings
from inputhaven.core.logging import configure_logging
from inputhaven.db.init import init_db
from inputhaven.models.account import Account
from inputhaven.services.api_keys import create_api_key


async def issue_api_key(email: str, name: str) -> str | None:
    account = await Account.find_one(Account.email == email)
    if not account:
        return None
    _, key = await create_api_key(account.id, name)
    return key


async def _main(args: argparse.Namespace) -> int:
    await init_db()
    key = await issue_api_key(args.email, args.name)
    if not key:
        print(f"No account with email {args.email}")
        return 1
    print(key)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="inputhaven.manage")
    sub = parser.add_subparsers(dest="command", required=True)
    create = sub.add_parser("create-api-key", help="Issue an API key for an account")
    create.add_argument("email")
    create.add_argument("--name", default="CLI")
    args = parser.parse_args(argv)
    configure_logging(debug=get_settings().debug)
    return asyncio.run(_main(args))


if __name__ == "__main__":
    raise SystemExit(main())
