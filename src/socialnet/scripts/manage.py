"""Utility script to manage the configured SQLite database schema."""
from __future__ import annotations

import argparse
import logging
import sys

from socialnet.core.settings import settings
from socialnet.db.migrations import clear_database, rollback_migrations, run_migrations


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Manage the social network database schema.")
    parser.add_argument(
        "command",
        choices=("migrate", "rollback", "flush"),
        help="migrate: apply up files; rollback: apply down files; flush: rollback then migrate",
    )
    parser.add_argument(
        "--dir",
        dest="directory",
        default=None,
        help=f"Migrations directory (default: {settings.migrations_dir})",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    print(f"[db] Using {settings.effective_database_url}")

    try:
        if args.command == "migrate":
            run_migrations(directory=args.directory)
        elif args.command == "rollback":
            rollback_migrations(directory=args.directory)
        else:
            clear_database(directory=args.directory)
    except FileNotFoundError as exc:
        print(f"[db] {exc}", file=sys.stderr)
        return 1

    print(f"[db] {args.command} completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
