# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Host service lifecycle capability.

Backends only know how to read a status and how to request a transition;
the bounded wait for the target status lives here so every backend gets
the same timeout semantics.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from mongosnap.exceptions import ServiceTimeoutError


class ServiceStatus(str, Enum):
    """Observed status of a host service."""

    STOPPED = "stopped"
    RUNNING = "running"
    TRANSITIONING = "transitioning"


@dataclass
class ServiceState:
    """A named service and its last observed status."""

    name: str
    status: ServiceStatus


class ServiceController(ABC):
    """Base interface for service manager backends."""

    # Service name used when configuration does not name one
    default_service_name: str = "mongod"

    def __init__(self, poll_interval: float = 1.0, logger: Any = None) -> None:
        self.poll_interval = poll_interval
        self.logger = logger or structlog.get_logger().bind(component="service")

    @abstractmethod
    async def status(self, name: str) -> ServiceStatus:
        """Return the current status of the named service."""

    @abstractmethod
    async def _request_start(self, name: str) -> None:
        """Ask the service manager to start the service without waiting."""

    @abstractmethod
    async def _request_stop(self, name: str) -> None:
        """Ask the service manager to stop the service without waiting."""

    @abstractmethod
    async def grant_access(self, name: str, path: str) -> None:
        """Give the service's running identity full control of path."""

    async def state(self, name: str) -> ServiceState:
        return ServiceState(name=name, status=await self.status(name))

    async def stop(self, name: str, timeout: float) -> None:
        """
        Stop the service and wait until it is observed Stopped.

        Raises:
            ServiceControlError: If the stop request is rejected
            ServiceTimeoutError: If Stopped is not observed within timeout
        """
        if await self.status(name) == ServiceStatus.STOPPED:
            self.logger.info("service_already_stopped", service=name)
            return
        self.logger.info("service_stopping", service=name)
        await self._request_stop(name)
        await self.wait_for_status(name, ServiceStatus.STOPPED, timeout)
        self.logger.info("service_stopped", service=name)

    async def start(self, name: str, timeout: float) -> None:
        """
        Start the service and wait until it is observed Running.

        Raises:
            ServiceControlError: If the start request is rejected
            ServiceTimeoutError: If Running is not observed within timeout
        """
        if await self.status(name) == ServiceStatus.RUNNING:
            self.logger.info("service_already_running", service=name)
            return
        self.logger.info("service_starting", service=name)
        await self._request_start(name)
        await self.wait_for_status(name, ServiceStatus.RUNNING, timeout)
        self.logger.info("service_started", service=name)

    async def wait_for_status(
        self,
        name: str,
        target: ServiceStatus,
        timeout: float,
    ) -> None:
        """
        Poll until the service reports target.

        Raises:
            ServiceTimeoutError: If target is not observed within timeout
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        current = await self.status(name)

        while current != target:
            if loop.time() >= deadline:
                raise ServiceTimeoutError(
                    f"Service {name} did not reach {target.value} within {timeout}s",
                    details={"service": name, "last_status": current.value},
                )
            await asyncio.sleep(self.poll_interval)
            current = await self.status(name)


async def ensure_running(
    controller: ServiceController,
    name: str,
    timeout: float,
    logger: Any,
) -> bool:
    """
    Compensating final start.

    Best-effort: there is no recovery layer above this, so a failure is
    logged and reported through the return value only.

    Returns:
        True if the service was observed Running
    """
    try:
        await controller.start(name, timeout)
        return True
    except Exception as e:
        logger.error("service_restart_failed", service=name, error=str(e))
        return False
