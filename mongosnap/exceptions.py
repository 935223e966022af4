# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
mongosnap Exceptions - Custom exceptions for the mongosnap package.
"""


class MongoSnapError(Exception):
    """Base exception for all mongosnap errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class PrivilegeError(MongoSnapError):
    """Raised when the process lacks the elevation snapshots require."""

    pass


class ValidationError(MongoSnapError):
    """Raised when paths or arguments are missing or invalid."""

    pass


class ConfigurationError(MongoSnapError):
    """Raised when configuration is invalid or the data directory is unknown."""

    pass


class ProviderError(MongoSnapError):
    """Raised when the volume snapshot subsystem fails."""

    pass


class PathResolutionError(ProviderError):
    """Raised when a live path does not belong to the snapshotted volume."""

    pass


class DatabaseCommandError(MongoSnapError):
    """Raised when a lock, unlock or introspection command fails."""

    pass


class ServiceControlError(MongoSnapError):
    """Raised when the database service cannot be stopped or started."""

    pass


class ServiceTimeoutError(ServiceControlError):
    """Raised when the service does not reach the requested status in time."""

    pass


class ArchiveError(MongoSnapError):
    """Raised when archive or data directory I/O fails."""

    pass


class CommandError(MongoSnapError):
    """Raised when an external command cannot run or exits non-zero."""

    pass
