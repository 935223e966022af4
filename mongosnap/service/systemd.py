# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
systemd service backend.
"""

import asyncio
import os
import shutil

from mongosnap.exceptions import CommandError, ServiceControlError
from mongosnap.proc import run_command
from mongosnap.service.base import ServiceController, ServiceStatus

_RUNNING = {"active"}
_TRANSITIONING = {"activating", "deactivating", "reloading", "refreshing"}


def _chown_tree(path: str, user: str, group: str | None) -> int:
    """Recursively chown path; returns the number of entries changed."""
    changed = 0
    shutil.chown(path, user=user, group=group)
    changed += 1
    for root, dirs, files in os.walk(path):
        for entry in dirs + files:
            shutil.chown(os.path.join(root, entry), user=user, group=group)
            changed += 1
    return changed


class SystemdServiceController(ServiceController):
    """Controls a unit through systemctl."""

    default_service_name = "mongod"

    async def status(self, name: str) -> ServiceStatus:
        # is-active exits non-zero for anything but "active"
        result = await run_command(["systemctl", "is-active", name], check=False)
        state = result.stdout.strip()
        if state in _RUNNING:
            return ServiceStatus.RUNNING
        if state in _TRANSITIONING:
            return ServiceStatus.TRANSITIONING
        return ServiceStatus.STOPPED

    async def _request_start(self, name: str) -> None:
        try:
            await run_command(["systemctl", "start", "--no-block", name])
        except CommandError as e:
            raise ServiceControlError(f"Failed to start {name}: {e.message}", details={"service": name}) from e

    async def _request_stop(self, name: str) -> None:
        try:
            await run_command(["systemctl", "stop", "--no-block", name])
        except CommandError as e:
            raise ServiceControlError(f"Failed to stop {name}: {e.message}", details={"service": name}) from e

    async def _unit_property(self, name: str, prop: str) -> str:
        result = await run_command(["systemctl", "show", "-p", prop, "--value", name])
        return result.stdout.strip()

    async def grant_access(self, name: str, path: str) -> None:
        user = await self._unit_property(name, "User")
        if not user or user == "root":
            self.logger.info("permission_repair_skipped", service=name, reason="runs_as_root")
            return
        group = await self._unit_property(name, "Group") or None

        loop = asyncio.get_running_loop()
        changed = await loop.run_in_executor(None, _chown_tree, path, user, group)
        self.logger.info(
            "permissions_repaired",
            service=name,
            path=path,
            user=user,
            group=group,
            entries=changed,
        )
