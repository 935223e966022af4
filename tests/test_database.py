# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for the database lock coordinator.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from pymongo.errors import AutoReconnect, OperationFailure

from mongosnap.database import DatabaseLockCoordinator
from mongosnap.exceptions import ConfigurationError, DatabaseCommandError

from conftest import FakeAdmin, FakeClient, make_coordinator


def coordinator_with(command: AsyncMock, lock_timeout: float | None = None) -> tuple:
    connection = AsyncMock()
    connection.command = command
    coordinator = DatabaseLockCoordinator("mongodb://localhost:27017", lock_timeout=lock_timeout)
    return coordinator, connection


# ============================================================================
# Introspection
# ============================================================================


@pytest.mark.asyncio
async def test_get_data_directory():
    coordinator, connection = coordinator_with(
        AsyncMock(return_value={"parsed": {"storage": {"dbPath": "/var/lib/mongodb"}}, "ok": 1.0})
    )

    assert await coordinator.get_data_directory(connection) == "/var/lib/mongodb"
    connection.command.assert_awaited_once_with({"getCmdLineOpts": 1})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply",
    [
        {"parsed": {}, "ok": 1.0},
        {"parsed": {"storage": None}, "ok": 1.0},
        {"parsed": {"storage": {"dbPath": ""}}, "ok": 1.0},
        {"ok": 1.0},
    ],
)
async def test_missing_db_path_is_configuration_error(reply):
    coordinator, connection = coordinator_with(AsyncMock(return_value=reply))

    with pytest.raises(ConfigurationError, match="dbPath"):
        await coordinator.get_data_directory(connection)


@pytest.mark.asyncio
async def test_get_data_directory_command_failure():
    coordinator, connection = coordinator_with(AsyncMock(side_effect=AutoReconnect("down")))

    with pytest.raises(DatabaseCommandError, match="getCmdLineOpts failed"):
        await coordinator.get_data_directory(connection)


# ============================================================================
# Lock / unlock
# ============================================================================


@pytest.mark.asyncio
async def test_lock_acknowledged():
    coordinator, connection = coordinator_with(AsyncMock(return_value={"ok": 1.0, "lockCount": 1}))

    assert await coordinator.lock(connection) is True
    connection.command.assert_awaited_once_with({"fsync": 1, "lock": True})


@pytest.mark.asyncio
async def test_lock_refused_by_server():
    coordinator, connection = coordinator_with(AsyncMock(side_effect=OperationFailure("unauthorized", code=13)))

    assert await coordinator.lock(connection) is False


@pytest.mark.asyncio
async def test_lock_without_ok_is_refusal():
    coordinator, connection = coordinator_with(AsyncMock(return_value={"ok": 0.0}))

    assert await coordinator.lock(connection) is False


@pytest.mark.asyncio
async def test_lock_timeout_raises():
    async def never_answers(_cmd):
        await asyncio.sleep(1)

    coordinator, connection = coordinator_with(AsyncMock(side_effect=never_answers), lock_timeout=0.01)

    with pytest.raises(DatabaseCommandError, match="lock state unknown"):
        await coordinator.lock(connection)


@pytest.mark.asyncio
async def test_unlock_failure_is_swallowed():
    coordinator, connection = coordinator_with(AsyncMock(side_effect=AutoReconnect("gone")))

    await coordinator.unlock(connection)

    connection.command.assert_awaited_once_with({"fsyncUnlock": 1})


# ============================================================================
# lock_session
# ============================================================================


@pytest.mark.asyncio
async def test_lock_session_unlocks_once_on_error():
    admin = FakeAdmin("/data")
    coordinator = make_coordinator(admin)
    connection = await coordinator.connect()

    with pytest.raises(RuntimeError):
        async with coordinator.lock_session(connection) as session:
            assert session.active
            raise RuntimeError("snapshot failed")

    assert admin.commands == ["fsync", "fsyncUnlock"]


@pytest.mark.asyncio
async def test_lock_session_unlocks_on_cancellation():
    admin = FakeAdmin("/data")
    coordinator = make_coordinator(admin)
    connection = await coordinator.connect()
    entered = asyncio.Event()

    async def hold_lock():
        async with coordinator.lock_session(connection):
            entered.set()
            await asyncio.sleep(10)

    task = asyncio.create_task(hold_lock())
    await entered.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert admin.count("fsyncUnlock") == 1


@pytest.mark.asyncio
async def test_lock_session_refused_never_unlocks():
    admin = FakeAdmin("/data", refuse_lock=True)
    coordinator = make_coordinator(admin)
    connection = await coordinator.connect()

    with pytest.raises(DatabaseCommandError, match="Failed to lock database"):
        async with coordinator.lock_session(connection):
            pytest.fail("block must not run")

    assert admin.count("fsyncUnlock") == 0


# ============================================================================
# Client lifecycle
# ============================================================================


@pytest.mark.asyncio
async def test_close_is_idempotent():
    client = FakeClient(FakeAdmin("/data"))
    coordinator = DatabaseLockCoordinator("mongodb://h:27017", client_factory=lambda _uri: client)

    await coordinator.connect()
    await coordinator.close()
    await coordinator.close()

    assert client.closed == 1


@pytest.mark.asyncio
async def test_list_database_names():
    coordinator = make_coordinator(FakeAdmin("/data"))
    connection = await coordinator.connect()

    assert await coordinator.list_database_names(connection) == ["admin", "local"]
