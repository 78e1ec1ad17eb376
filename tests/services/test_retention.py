# tests/services/test_retention.py
"""Tests for the background retention sweeper."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from duet_chat.db.time import utcnow
from duet_chat.models import Message, UserSession
from duet_chat.services import retention
from duet_chat.services.retention import RetentionSweeper, SweepResult


@pytest.mark.asyncio
async def test_sweep_once_purges_messages_and_expired_sessions(
    db_session, alice, bob, store_message
) -> None:
    store_message(alice, bob, age=timedelta(hours=48))
    kept = store_message(alice, bob, age=timedelta(hours=1))
    db_session.add(UserSession(user_id=alice.id, token="expired", expires_at=utcnow() - timedelta(minutes=1)))
    db_session.add(UserSession(user_id=bob.id, token="live", expires_at=utcnow() + timedelta(days=1)))
    db_session.flush()

    sweeper = RetentionSweeper(horizon=timedelta(hours=24), db_session=db_session)
    result = await sweeper.sweep_once()

    assert result == SweepResult(messages=1, sessions=1)
    assert sweeper.last_result == result
    assert [message.id for message in db_session.query(Message).all()] == [kept.id]
    assert [session.token for session in db_session.query(UserSession).all()] == ["live"]


@pytest.mark.asyncio
async def test_sweep_failure_is_logged_and_not_raised(db_session, mocker, caplog) -> None:
    mocker.patch.object(
        retention,
        "purge_older_than",
        side_effect=OperationalError("DELETE", {}, Exception("database is locked")),
    )
    mocker.patch.object(db_session, "rollback")

    sweeper = RetentionSweeper(db_session=db_session)
    with caplog.at_level("WARNING", logger="duet_chat.services.retention"):
        result = await sweeper.sweep_once()

    assert result is None
    assert sweeper.last_result is None
    assert "Retention sweep failed" in caplog.text


@pytest.mark.asyncio
async def test_start_sweeps_immediately_and_stop_ends_loop(db_session, mocker) -> None:
    sweeper = RetentionSweeper(interval_seconds=3600, db_session=db_session)
    sweep = mocker.patch.object(sweeper, "sweep_once", return_value=None)

    await sweeper.start()
    assert sweeper.running is True
    sweep.assert_awaited_once()

    await sweeper.stop()
    assert sweeper.running is False


@pytest.mark.asyncio
async def test_loop_keeps_running_after_failed_sweep(db_session, mocker) -> None:
    calls = {"count": 0}

    def _flaky(db, horizon):
        calls["count"] += 1
        if calls["count"] == 1:
            raise OperationalError("DELETE", {}, Exception("unreachable"))
        return 0

    mocker.patch.object(retention, "purge_older_than", _flaky)
    mocker.patch.object(retention, "purge_expired_sessions", return_value=0)
    mocker.patch.object(db_session, "rollback")

    sweeper = RetentionSweeper(interval_seconds=0.01, db_session=db_session)
    await sweeper.start()
    for _ in range(200):
        if calls["count"] >= 3:
            break
        await asyncio.sleep(0.01)
    await sweeper.stop()

    assert calls["count"] >= 3
    assert sweeper.last_result == SweepResult(messages=0, sessions=0)


@pytest.mark.asyncio
async def test_start_twice_does_not_spawn_second_loop(db_session, mocker) -> None:
    sweeper = RetentionSweeper(interval_seconds=3600, db_session=db_session)
    sweep = mocker.patch.object(sweeper, "sweep_once", return_value=None)

    await sweeper.start()
    await sweeper.start()
    await sweeper.stop()

    sweep.assert_awaited_once()


@pytest.mark.asyncio
async def test_zero_horizon_is_kept_and_purges_everything_older_than_now(
    db_session, alice, bob, store_message
) -> None:
    store_message(alice, bob, age=timedelta(seconds=5))
    store_message(bob, alice, age=timedelta(minutes=1))

    sweeper = RetentionSweeper(horizon=timedelta(0), db_session=db_session)
    assert sweeper.horizon == timedelta(0)

    result = await sweeper.sweep_once()

    assert result is not None
    assert result.messages == 2
    assert db_session.query(Message).count() == 0
