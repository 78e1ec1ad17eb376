"""Background retention sweep for stored messages.

The RetentionSweeper deletes messages older than the retention horizon once
when it starts and then on a fixed interval for the lifetime of the process.
A failed sweep is logged and simply retried at the next interval.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from duet_chat.core.settings import settings
from duet_chat.db.session import SessionLocal
from duet_chat.services.message_service import purge_older_than
from duet_chat.services.session_service import purge_expired_sessions

# Configure logger for this module
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    """Row counts removed by a single sweep."""

    messages: int
    sessions: int


class RetentionSweeper:
    """Periodically purges messages that fell outside the retention horizon."""

    def __init__(
        self,
        horizon: timedelta | None = None,
        interval_seconds: float | None = None,
        db_session: Session | None = None,
    ) -> None:
        """Initialize the sweeper.

        Args:
            horizon: Maximum message age. Defaults to the configured retention.
            interval_seconds: Delay between sweeps. Defaults to the configured interval.
            db_session: Optional database session. If None, creates new sessions as needed.
        """
        self.horizon = horizon if horizon is not None else settings.retention_horizon
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.retention_sweep_interval_seconds
        )
        self._db_session = db_session
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self.last_result: SweepResult | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Run an initial sweep, then schedule the recurring loop."""
        if self.running:
            return

        self._stopping.clear()
        await self.sweep_once()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the recurring loop and wait for it to finish."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        interval = max(0.01, float(self.interval_seconds))

        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except TimeoutError:
                await self.sweep_once()

    async def sweep_once(self) -> SweepResult | None:
        """Run one sweep, logging instead of raising on failure."""
        try:
            result = await asyncio.to_thread(self._sweep)
        except SQLAlchemyError as e:
            logger.warning("Retention sweep failed, retrying next interval: %s", e)
            return None
        except OSError as e:
            logger.warning("Retention sweep could not reach the store: %s", e)
            return None
        except (ValueError, TypeError) as e:
            logger.error("Retention sweep encountered a data error: %s", e, exc_info=True)
            return None

        self.last_result = result
        if result.messages or result.sessions:
            logger.info(
                "Purged %d message(s) older than %s and %d expired session(s)",
                result.messages,
                self.horizon,
                result.sessions,
            )
        else:
            logger.debug("Retention sweep found nothing to purge")
        return result

    def _sweep(self) -> SweepResult:
        with self._session_scope() as db:
            try:
                messages = purge_older_than(db, self.horizon)
                sessions = purge_expired_sessions(db)
            except SQLAlchemyError:
                db.rollback()
                raise
        return SweepResult(messages=messages, sessions=sessions)

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        if self._db_session is not None:
            # Use provided session
            yield self._db_session
            return
        with SessionLocal() as db:
            yield db
