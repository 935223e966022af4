# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
mongosnap Database - Administrative lock/unlock and introspection.

The database is quiesced with {fsync: 1, lock: true} while the volume is
snapshotted and resumed with {fsyncUnlock: 1}. A "connection" here is the
admin database handle of a pymongo AsyncMongoClient.

Lock and unlock have no timeout unless one is configured: a server that
never answers blocks the run.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Any, AsyncIterator, Callable, List

import structlog
from pymongo import AsyncMongoClient
from pymongo.errors import OperationFailure, PyMongoError

from mongosnap.errors import explain_missing_db_path
from mongosnap.exceptions import ConfigurationError, DatabaseCommandError

ClientFactory = Callable[[str], Any]


@dataclass
class LockSession:
    """The single fsync lock of one backup run."""

    acquired_at: datetime | None = None

    @property
    def active(self) -> bool:
        return self.acquired_at is not None


def _reply_ok(reply: Any) -> bool:
    return bool(reply) and bool(reply.get("ok"))


class DatabaseLockCoordinator:
    """Issues quiesce/resume and introspection commands."""

    def __init__(
        self,
        connection_string: str,
        client_factory: ClientFactory | None = None,
        lock_timeout: float | None = None,
        logger: Any = None,
    ) -> None:
        self.connection_string = connection_string
        self.client_factory = client_factory or AsyncMongoClient
        self.lock_timeout = lock_timeout
        self.logger = logger or structlog.get_logger().bind(component="database")
        self._client: Any = None

    async def connect(self) -> Any:
        """Create the client and return its admin database handle."""
        if self._client is None:
            self._client = self.client_factory(self.connection_string)
        return self._client.admin

    async def close(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            await client.close()
        except Exception as e:
            self.logger.warning("client_close_failed", error=str(e))

    async def get_data_directory(self, connection: Any) -> str:
        """
        Ask the server for its data directory (storage.dbPath).

        Raises:
            DatabaseCommandError: If getCmdLineOpts fails
            ConfigurationError: If the server reports no dbPath
        """
        try:
            reply = await connection.command({"getCmdLineOpts": 1})
        except PyMongoError as e:
            raise DatabaseCommandError(f"getCmdLineOpts failed: {e}") from e

        parsed = (reply or {}).get("parsed") or {}
        db_path = (parsed.get("storage") or {}).get("dbPath")
        if not db_path:
            raise ConfigurationError(explain_missing_db_path())

        self.logger.info("data_directory_resolved", db_path=db_path)
        return str(db_path)

    async def lock(self, connection: Any) -> bool:
        """
        Flush and lock the database against writes.

        Returns:
            True if the server acknowledged the lock, False if it refused

        Raises:
            DatabaseCommandError: If the command could not be delivered
        """
        self.logger.info("database_locking")
        try:
            reply = await asyncio.wait_for(
                connection.command({"fsync": 1, "lock": True}),
                timeout=self.lock_timeout,
            )
        except OperationFailure as e:
            self.logger.error("database_lock_refused", error=str(e))
            return False
        except asyncio.TimeoutError as e:
            # The server may still apply the lock after we gave up on it
            self.logger.error("database_lock_timeout", timeout=self.lock_timeout)
            raise DatabaseCommandError(
                f"fsync lock did not answer within {self.lock_timeout}s; lock state unknown"
            ) from e
        except PyMongoError as e:
            raise DatabaseCommandError(f"fsync lock failed: {e}") from e

        if not _reply_ok(reply):
            self.logger.error("database_lock_refused", reply=reply)
            return False

        self.logger.info("database_locked", lock_count=reply.get("lockCount"))
        return True

    async def unlock(self, connection: Any) -> None:
        """
        Resume writes. Failures are logged only and never raised.
        """
        self.logger.info("database_unlocking")
        try:
            reply = await asyncio.wait_for(
                connection.command({"fsyncUnlock": 1}),
                timeout=self.lock_timeout,
            )
        except Exception as e:
            self.logger.error("database_unlock_failed", error=str(e))
            return

        if not _reply_ok(reply):
            self.logger.error("database_unlock_failed", reply=reply)
            return
        self.logger.info("database_unlocked", lock_count=reply.get("lockCount"))

    @asynccontextmanager
    async def lock_session(self, connection: Any) -> AsyncIterator[LockSession]:
        """
        Hold the fsync lock for the duration of the block.

        Unlock runs exactly once on every exit path, including cancellation,
        and only when the lock was acknowledged.

        Raises:
            DatabaseCommandError: If the server refuses the lock
        """
        session = LockSession()
        if not await self.lock(connection):
            raise DatabaseCommandError("Failed to lock database with fsync lock")
        session.acquired_at = datetime.now(UTC)
        try:
            yield session
        finally:
            await self.unlock(connection)

    async def list_database_names(self, connection: Any) -> List[str]:
        """Connectivity probe used after restore."""
        try:
            reply = await connection.command({"listDatabases": 1, "nameOnly": True})
        except PyMongoError as e:
            raise DatabaseCommandError(f"listDatabases failed: {e}") from e
        return [db["name"] for db in (reply or {}).get("databases", [])]
