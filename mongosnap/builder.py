# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
mongosnap Builder - Functional builder pattern for configuration.

This module provides pure functions for building MongoSnapConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict

from mongosnap.config import (
    DEFAULT_CONNECTION_STRING,
    MongoSnapConfig,
    ServiceBackend,
    SnapshotBackend,
)
from mongosnap.exceptions import ConfigurationError


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "connection_string": DEFAULT_CONNECTION_STRING,
        "service_name": None,
        "snapshot_backend": SnapshotBackend.AUTO,
        "service_backend": ServiceBackend.AUTO,
        "service_timeout": 30.0,
        "poll_interval": 1.0,
        "snapshot_timeout": None,
        "lock_timeout": None,
        "data_directory": None,
        "archive_prefix": "mongodb_backup",
        "lock_extension": ".lock",
        "verify_after_restore": True,
        "lvm_snapshot_size": "1G",
        "lvm_mount_base": Path("/run/mongosnap"),
    }


def with_connection(config: ConfigDict, connection_string: str) -> ConfigDict:
    """
    Set the database connection string.

    Args:
        config: Current configuration dictionary
        connection_string: MongoDB URI, e.g. 'mongodb://localhost:27017'

    Returns:
        New configuration dictionary with the connection string set
    """
    return {**config, "connection_string": connection_string}


def with_service(
    config: ConfigDict,
    service_name: str,
    backend: ServiceBackend | str | None = None,
) -> ConfigDict:
    """
    Set the database service name and, optionally, the service backend.
    """
    updated = {**config, "service_name": service_name}
    if backend is not None:
        updated["service_backend"] = ServiceBackend(backend)
    return updated


def with_snapshot_backend(config: ConfigDict, backend: SnapshotBackend | str) -> ConfigDict:
    """Select the volume snapshot backend ('auto', 'lvm' or 'vss')."""
    return {**config, "snapshot_backend": SnapshotBackend(backend)}


def with_lvm_snapshot(
    config: ConfigDict,
    size: str,
    mount_base: Path | str | None = None,
) -> ConfigDict:
    """
    Configure LVM snapshot sizing and mount location.

    Args:
        config: Current configuration dictionary
        size: lvcreate size argument, e.g. '2G' or '20%ORIGIN'
        mount_base: Directory under which snapshots are mounted

    Returns:
        New configuration dictionary with LVM settings applied
    """
    updated = {**config, "lvm_snapshot_size": size}
    if mount_base is not None:
        updated["lvm_mount_base"] = Path(mount_base)
    return updated


def with_service_timeout(config: ConfigDict, seconds: float) -> ConfigDict:
    """
    Set the bound on waiting for service stop/start.

    Raises:
        ValueError: If seconds is not positive
    """
    if seconds <= 0:
        raise ValueError(f"service_timeout must be > 0, got {seconds}")
    return {**config, "service_timeout": seconds}


def with_operation_timeouts(
    config: ConfigDict,
    snapshot_timeout: float | None = None,
    lock_timeout: float | None = None,
) -> ConfigDict:
    """
    Bound snapshot creation and the lock/unlock commands.

    Both default to None, meaning the run waits as long as the snapshot
    subsystem or database server takes.
    """
    return {**config, "snapshot_timeout": snapshot_timeout, "lock_timeout": lock_timeout}


def restore_into(config: ConfigDict, data_directory: Path | str) -> ConfigDict:
    """Restore into an explicit data directory instead of the server's dbPath."""
    return {**config, "data_directory": Path(data_directory)}


def skip_restore_verification(config: ConfigDict) -> ConfigDict:
    """Disable the post-restore connectivity smoke test."""
    return {**config, "verify_after_restore": False}


def build_config(config_dict: ConfigDict) -> MongoSnapConfig:
    """
    Build the final immutable configuration.

    Args:
        config_dict: Configuration dictionary

    Returns:
        Validated MongoSnapConfig

    Raises:
        ConfigurationError: If the resulting configuration is invalid
    """
    return MongoSnapConfig(**config_dict)


def build_from_steps(*steps: BuilderFunc) -> MongoSnapConfig:
    """
    Apply builder steps in order to the default config and build it.

    Example:
        config = build_from_steps(
            lambda c: with_connection(c, "mongodb://db1:27017"),
            lambda c: with_service(c, "mongod", "systemd"),
        )
    """
    config = create_empty_config()
    for step in steps:
        config = step(config)
    return build_config(config)


def create_config(
    connection_string: str = DEFAULT_CONNECTION_STRING,
    *,
    service_name: str | None = None,
    snapshot_backend: str | SnapshotBackend = SnapshotBackend.AUTO,
    service_backend: str | ServiceBackend = ServiceBackend.AUTO,
    service_timeout: float = 30.0,
    snapshot_timeout: float | None = None,
    lock_timeout: float | None = None,
    data_directory: str | Path | None = None,
    **kwargs: Any,
) -> MongoSnapConfig:
    """
    Create a mongosnap configuration from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Args:
        connection_string: MongoDB URI (default: mongodb://localhost:27017)
        service_name: Service unit/name (default: backend specific)
        snapshot_backend: 'auto', 'lvm' or 'vss'
        service_backend: 'auto', 'systemd' or 'windows'
        service_timeout: Seconds to wait for service stop/start (default: 30)
        snapshot_timeout: Optional bound on snapshot creation
        lock_timeout: Optional bound on fsync lock/unlock
        data_directory: Restore target override
        **kwargs: Additional configuration options

    Returns:
        Validated, immutable MongoSnapConfig instance

    Raises:
        ConfigurationError: If an option is unknown or a value is invalid

    Example:
        config = create_config(
            "mongodb://localhost:27017",
            service_name="mongod",
            snapshot_backend="lvm",
            lvm_snapshot_size="20%ORIGIN",
        )
    """
    config_dict = create_empty_config()
    config_dict = with_connection(config_dict, connection_string)
    config_dict = with_snapshot_backend(config_dict, snapshot_backend)

    if service_name:
        config_dict = with_service(config_dict, service_name, service_backend)
    else:
        config_dict["service_backend"] = ServiceBackend(service_backend)

    config_dict = with_service_timeout(config_dict, service_timeout)
    config_dict = with_operation_timeouts(config_dict, snapshot_timeout, lock_timeout)

    if data_directory:
        config_dict = restore_into(config_dict, data_directory)

    unknown = sorted(key for key in kwargs if key not in config_dict)
    if unknown:
        raise ConfigurationError(
            "Unknown configuration options",
            details={"options": unknown},
        )
    config_dict.update(kwargs)

    return build_config(config_dict)
