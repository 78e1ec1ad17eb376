# src/duet_chat/scripts/migrate.py
"""Apply or roll back schema revisions against DATABASE_URL.

    python -m duet_chat.scripts.migrate            # upgrade to head
    python -m duet_chat.scripts.migrate downgrade -1
    python -m duet_chat.scripts.migrate current
"""
from __future__ import annotations

import argparse
import os
import sys

from alembic import command
from alembic.config import Config

from duet_chat.core.settings import settings

MIGRATIONS_DIR = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", "..", "..", "migrations")
)


def build_config() -> Config:
    cfg = Config(os.path.join(MIGRATIONS_DIR, "alembic.ini"))
    cfg.set_main_option("script_location", MIGRATIONS_DIR)
    cfg.set_main_option("sqlalchemy.url", settings.database_url_sync)
    return cfg


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Manage the Duet Chat database schema")
    parser.add_argument("action", nargs="?", default="upgrade", choices=["upgrade", "downgrade", "current"])
    parser.add_argument("revision", nargs="?", help="Target revision (default: head for upgrade)")
    args = parser.parse_args(argv)

    cfg = build_config()
    if args.action == "upgrade":
        command.upgrade(cfg, args.revision or "head")
    elif args.action == "downgrade":
        if not args.revision:
            parser.error("downgrade requires a target revision")
        command.downgrade(cfg, args.revision)
    else:
        command.current(cfg, verbose=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
