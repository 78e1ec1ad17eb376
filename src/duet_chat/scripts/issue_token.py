# src/duet_chat/scripts/issue_token.py
"""Issue an access token for a user, creating the user if needed.

Credential verification belongs to the external auth service; this script
stands in for it during development:

    python -m duet_chat.scripts.issue_token alice --email alice@example.com
"""

from __future__ import annotations

import argparse
import sys

from duet_chat.db.session import SessionLocal, create_tables
from duet_chat.services.session_service import issue_session
from duet_chat.services.user_service import get_or_create_user


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Issue a Duet Chat access token")
    parser.add_argument("username", help="Username to issue the token for")
    parser.add_argument(
        "--email",
        help="Email used when the user does not exist yet (default: <username>@localhost)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    email = args.email or f"{args.username}@localhost"

    create_tables()
    db = SessionLocal()
    try:
        user, created = get_or_create_user(db, args.username, email)
        user_id, username = user.id, user.username
        token = issue_session(db, user)
    finally:
        db.close()

    if created:
        print(f"Created user {username} (id={user_id})", file=sys.stderr)
    print(token)
    return 0


if __name__ == "__main__":
    sys.exit(main())
