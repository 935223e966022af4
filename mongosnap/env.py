# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

These helpers are small wrappers around create_config(). They read a set
of well-known MONGOSNAP_* variables so the CLI and scheduled jobs can be
configured without code.
"""

from __future__ import annotations

import os
from pathlib import Path

from mongosnap.builder import create_config
from mongosnap.config import DEFAULT_CONNECTION_STRING, MongoSnapConfig, ServiceBackend, SnapshotBackend
from mongosnap.errors import (
    explain_invalid_service_backend_env,
    explain_invalid_snapshot_backend_env,
    explain_invalid_timeout_env,
)
from mongosnap.exceptions import ConfigurationError


def _parse_snapshot_backend(value: str | None) -> SnapshotBackend:
    if not value:
        return SnapshotBackend.AUTO
    try:
        return SnapshotBackend(value.lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_snapshot_backend_env(value)) from exc


def _parse_service_backend(value: str | None) -> ServiceBackend:
    if not value:
        return ServiceBackend.AUTO
    try:
        return ServiceBackend(value.lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_service_backend_env(value)) from exc


def _parse_timeout(name: str, value: str | None, default: float | None) -> float | None:
    if value is None or not value.strip():
        return default
    try:
        seconds = float(value)
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_timeout_env(name, value)) from exc
    if seconds <= 0:
        raise ConfigurationError(explain_invalid_timeout_env(name, value))
    return seconds


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


def create_config_from_env(*, connection_string: str | None = None) -> MongoSnapConfig:
    """
    Create a MongoSnapConfig from environment variables.

    An explicit connection_string (e.g. from the command line) wins over
    the environment.

    Optional environment variables:
        - MONGOSNAP_CONNECTION_STRING: MongoDB URI (default: mongodb://localhost:27017)
        - MONGOSNAP_SERVICE_NAME: Service unit/name (default: backend specific)
        - MONGOSNAP_SNAPSHOT_BACKEND: 'auto' | 'lvm' | 'vss' (default: auto)
        - MONGOSNAP_SERVICE_BACKEND: 'auto' | 'systemd' | 'windows' (default: auto)
        - MONGOSNAP_SERVICE_TIMEOUT: Seconds (default: 30)
        - MONGOSNAP_SNAPSHOT_TIMEOUT: Seconds, empty for no bound
        - MONGOSNAP_LOCK_TIMEOUT: Seconds, empty for no bound
        - MONGOSNAP_DATA_DIRECTORY: Restore target override
        - MONGOSNAP_VERIFY_RESTORE: '0'/'false' disables the smoke test
        - MONGOSNAP_LVM_SNAPSHOT_SIZE: lvcreate size (default: 1G)
        - MONGOSNAP_LVM_MOUNT_BASE: Snapshot mount base (default: /run/mongosnap)
    """

    conn = (
        connection_string
        or os.getenv("MONGOSNAP_CONNECTION_STRING")
        or DEFAULT_CONNECTION_STRING
    )
    data_dir_env = os.getenv("MONGOSNAP_DATA_DIRECTORY")

    extra = {}
    lvm_size = os.getenv("MONGOSNAP_LVM_SNAPSHOT_SIZE")
    if lvm_size:
        extra["lvm_snapshot_size"] = lvm_size
    mount_base = os.getenv("MONGOSNAP_LVM_MOUNT_BASE")
    if mount_base:
        extra["lvm_mount_base"] = Path(mount_base)

    return create_config(
        conn,
        service_name=os.getenv("MONGOSNAP_SERVICE_NAME") or None,
        snapshot_backend=_parse_snapshot_backend(os.getenv("MONGOSNAP_SNAPSHOT_BACKEND")),
        service_backend=_parse_service_backend(os.getenv("MONGOSNAP_SERVICE_BACKEND")),
        service_timeout=_parse_timeout(
            "MONGOSNAP_SERVICE_TIMEOUT", os.getenv("MONGOSNAP_SERVICE_TIMEOUT"), 30.0
        ),
        snapshot_timeout=_parse_timeout(
            "MONGOSNAP_SNAPSHOT_TIMEOUT", os.getenv("MONGOSNAP_SNAPSHOT_TIMEOUT"), None
        ),
        lock_timeout=_parse_timeout(
            "MONGOSNAP_LOCK_TIMEOUT", os.getenv("MONGOSNAP_LOCK_TIMEOUT"), None
        ),
        data_directory=Path(data_dir_env) if data_dir_env else None,
        verify_after_restore=_parse_bool(os.getenv("MONGOSNAP_VERIFY_RESTORE"), True),
        **extra,
    )
