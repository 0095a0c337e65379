"""Manage the slot board access list.

Usage:
    python slot_access.py list
    python slot_access.py block <name>
    python slot_access.py allow <name>     # once any allow rule exists, only allowed names may act
    python slot_access.py remove <name>

The API caches rules for up to five minutes.
"""

import asyncio
import os
import sys
from pathlib import Path

import asyncpg
from dotenv import load_dotenv

from shared.repositories.access_rule import AccessRuleRepository

load_dotenv(Path(__file__).resolve().parent.parent / "api" / ".env")

USAGE = "Usage: python slot_access.py list | block <name> | allow <name> | remove <name>"


async def main() -> None:
    args = sys.argv[1:]
    if not args or args[0] not in ("list", "block", "allow", "remove"):
        print(USAGE)
        sys.exit(1)
    command = args[0]
    if command != "list" and len(args) != 2:
        print(USAGE)
        sys.exit(1)

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL not set. Check api/.env or environment variables.")
        sys.exit(1)

    pool = await asyncpg.create_pool(database_url, min_size=1, max_size=2, statement_cache_size=0)
    if pool is None:
        print("ERROR: Failed to create connection pool.")
        sys.exit(1)

    try:
        repo = AccessRuleRepository(pool)
        if command == "list":
            rules = await repo.list_rules()
            if not rules:
                print("No access rules: everyone may use the board.")
            for rule in rules:
                print(f"  {rule.rule:<6} {rule.identity}")
        elif command == "remove":
            removed = await repo.remove_rule(args[1])
            print("Removed." if removed else f"No rule for {args[1]}.")
        else:
            rule = await repo.add_rule(args[1], command)
            print(f"{rule.identity} -> {rule.rule}")
    finally:
        await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
