"""Tests for the SQLite-backed security event store."""

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio

from clubguard.database.db_connection import ConnectionManager
from clubguard.datatypes.security_datatypes import EventType, SecurityEvent, Severity
from clubguard.security.event_store import SecurityEventStore


@pytest_asyncio.fixture
async def connection(tmp_path):
    manager = ConnectionManager()
    await manager.open(tmp_path / "security.db")
    yield manager
    await manager.close()


@pytest.fixture
def store(connection, clock):
    return SecurityEventStore(connection, clock=clock)


def make_event(clock, event_type=EventType.COMMAND_EXECUTION, severity=Severity.LOW, details=None, **overrides):
    fields = dict(
        type=event_type,
        user_id="u1",
        user_name="alice",
        severity=severity,
        guild_id="g1",
        channel_id="c1",
        command_name="fee",
        details={"result": "success"} if details is None else details,
        timestamp=clock(),
    )
    fields.update(overrides)
    return SecurityEvent(**fields)


@pytest.mark.asyncio
async def test_append_then_recent_round_trips_fields(store, clock):
    event = make_event(clock, EventType.RATE_LIMIT_EXCEEDED, Severity.MEDIUM, {"count": 5, "limit": 5})
    await store.append(event)

    stored = await store.recent()
    assert len(stored) == 1
    assert stored[0].id > 0
    assert stored[0].event == event


@pytest.mark.asyncio
async def test_empty_details_are_stored_as_null(store, clock, connection):
    await store.append(make_event(clock, details={}))

    async with connection.read() as conn:
        async with conn.execute("SELECT details FROM security_events") as cursor:
            row = await cursor.fetchone()
    assert row[0] is None
    assert (await store.recent())[0].event.details == {}


@pytest.mark.asyncio
async def test_recent_is_newest_first_and_limited(store, clock):
    for index in range(5):
        await store.append(make_event(clock, command_name=f"cmd{index}"))
        clock.advance(seconds=1)

    stored = await store.recent(limit=3)
    assert [item.event.command_name for item in stored] == ["cmd4", "cmd3", "cmd2"]


@pytest.mark.asyncio
async def test_recent_filters_by_severity_and_type(store, clock):
    await store.append(make_event(clock))
    await store.append(make_event(clock, EventType.SUSPICIOUS_ACTIVITY, Severity.HIGH))
    await store.append(make_event(clock, EventType.PERMISSION_DENIED, Severity.HIGH))

    high = await store.recent(severity=Severity.HIGH)
    assert {item.event.type for item in high} == {EventType.SUSPICIOUS_ACTIVITY, EventType.PERMISSION_DENIED}

    suspicious = await store.recent(severity=Severity.HIGH, event_type=EventType.SUSPICIOUS_ACTIVITY)
    assert len(suspicious) == 1


@pytest.mark.asyncio
async def test_count_since(store, clock):
    await store.append(make_event(clock, timestamp=clock() - timedelta(hours=25)))
    await store.append(make_event(clock, timestamp=clock() - timedelta(hours=1)))
    await store.append(make_event(clock))

    assert await store.count_since(24) == 2


@pytest.mark.asyncio
async def test_delete_older_than(store, clock):
    await store.append(make_event(clock, timestamp=clock() - timedelta(days=31)))
    await store.append(make_event(clock, timestamp=clock() - timedelta(days=29)))

    assert await store.delete_older_than(30) == 1
    remaining = await store.recent()
    assert len(remaining) == 1
    assert remaining[0].event.timestamp == clock() - timedelta(days=29)


@pytest.mark.asyncio
async def test_breakdown_counts_recent_events(store, clock):
    await store.append(make_event(clock))
    await store.append(make_event(clock))
    await store.append(make_event(clock, EventType.SUSPICIOUS_ACTIVITY, Severity.HIGH))

    severities, types = await store.breakdown()
    assert severities == {Severity.LOW: 2, Severity.HIGH: 1}
    assert types == {EventType.COMMAND_EXECUTION: 2, EventType.SUSPICIOUS_ACTIVITY: 1}


@pytest.mark.asyncio
async def test_unreadable_details_are_kept_raw(store, clock, connection):
    await store.append(make_event(clock))
    await connection.connection.execute("UPDATE security_events SET details = 'not json'")
    await connection.connection.commit()

    stored = await store.recent()
    assert stored[0].event.details == {"raw": "not json"}


@pytest.mark.asyncio
async def test_append_without_open_connection_raises(clock):
    store = SecurityEventStore(ConnectionManager(), clock=clock)
    with pytest.raises(RuntimeError):
        await store.append(make_event(clock))


@pytest.mark.asyncio
async def test_append_is_not_lost_when_retention_transaction_rolls_back(store, clock, connection):
    await store.append(make_event(clock, command_name="old", timestamp=clock() - timedelta(days=40)))

    with pytest.raises(RuntimeError):
        async with connection.transaction() as conn:
            await conn.execute("DELETE FROM security_events")
            pending = asyncio.create_task(store.append(make_event(clock, command_name="new")))
            await asyncio.sleep(0.01)
            assert not pending.done()
            raise RuntimeError("retention aborted")

    await pending
    stored = await store.recent()
    assert sorted(item.event.command_name for item in stored) == ["new", "old"]


@pytest.mark.asyncio
async def test_retention_delete_is_not_committed_by_concurrent_append(store, clock, connection):
    await store.append(make_event(clock, command_name="old", timestamp=clock() - timedelta(days=40)))

    async def append_new():
        await store.append(make_event(clock, command_name="new"))

    with pytest.raises(RuntimeError):
        async with connection.transaction() as conn:
            await conn.execute("DELETE FROM security_events")
            pending = asyncio.create_task(append_new())
            await asyncio.sleep(0.01)
            raise RuntimeError("retention aborted")

    await pending
    stored = await store.recent()
    assert "old" in {item.event.command_name for item in stored}
