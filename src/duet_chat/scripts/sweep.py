# src/duet_chat/scripts/sweep.py
"""Run a single retention sweep, e.g. from cron when the API is not running."""

import asyncio
import logging
import sys

from duet_chat.core.settings import settings
from duet_chat.services.retention import RetentionSweeper


async def run_once() -> int:
    result = await RetentionSweeper().sweep_once()
    if result is None:
        return 1
    print(
        f"Deleted {result.messages} message(s) older than "
        f"{settings.message_retention_hours}h and {result.sessions} expired session(s)"
    )
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level.upper())
    sys.exit(asyncio.run(run_once()))
