# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
mongosnap Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation so a backup or
restore run cannot change its own settings halfway through.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List
import re

DEFAULT_CONNECTION_STRING = "mongodb://localhost:27017"


class SnapshotBackend(str, Enum):
    """Volume snapshot backend."""

    AUTO = "auto"  # Pick by platform
    LVM = "lvm"  # Linux logical volume snapshots
    VSS = "vss"  # Windows Volume Shadow Copy Service


class ServiceBackend(str, Enum):
    """Host service manager backend."""

    AUTO = "auto"
    SYSTEMD = "systemd"
    WINDOWS = "windows"


def _validate_connection_string(value: str) -> bool:
    """Accept standard and SRV MongoDB URIs."""
    return bool(value) and value.startswith(("mongodb://", "mongodb+srv://"))


def _validate_lvm_size(size: str) -> bool:
    """
    Validate an lvcreate --size / --extents argument.

    Accepts absolute sizes ("512M", "1.5G") and extent percentages
    ("20%ORIGIN", "10%FREE").
    """
    if not size:
        return False
    if re.match(r"^\d+(\.\d+)?[bBsSkKmMgGtTpPeE]?$", size):
        return True
    return bool(re.match(r"^\d+%(ORIGIN|VG|FREE|PVS)$", size))


def _validate_optional_timeout(value: float | None) -> bool:
    return value is None or value > 0


@dataclass(frozen=True)
class MongoSnapConfig:
    """
    Immutable configuration for backup and restore runs.
    """

    # Database endpoint used for lock/unlock and introspection
    connection_string: str = DEFAULT_CONNECTION_STRING

    # Service unit/name of the database engine (None: backend default)
    service_name: str | None = None

    # Snapshot and service backends
    snapshot_backend: SnapshotBackend = SnapshotBackend.AUTO
    service_backend: ServiceBackend = ServiceBackend.AUTO

    # Bound on waiting for the service to reach Stopped/Running
    service_timeout: float = 30.0

    # Interval between service status polls
    poll_interval: float = 1.0

    # Optional bounds for snapshot creation and lock/unlock (None: wait forever)
    snapshot_timeout: float | None = None
    lock_timeout: float | None = None

    # Restore target override; when unset the server is asked for dbPath
    data_directory: Path | None = None

    # File name prefix for backup archives
    archive_prefix: str = "mongodb_backup"

    # Extension of transient lock markers excluded from archives
    lock_extension: str = ".lock"

    # Run the connectivity smoke test after restore
    verify_after_restore: bool = True

    # LVM: copy-on-write size of the snapshot LV
    lvm_snapshot_size: str = "1G"

    # LVM: where snapshot LVs are mounted read-only
    lvm_mount_base: Path = field(default_factory=lambda: Path("/run/mongosnap"))

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not _validate_connection_string(self.connection_string):
            errors.append(f"Invalid connection_string: {self.connection_string!r}")

        if self.service_name is not None and not self.service_name.strip():
            errors.append("service_name must not be blank")

        if self.service_timeout <= 0:
            errors.append(f"service_timeout must be > 0, got {self.service_timeout}")

        if self.poll_interval <= 0:
            errors.append(f"poll_interval must be > 0, got {self.poll_interval}")

        if not _validate_optional_timeout(self.snapshot_timeout):
            errors.append(f"snapshot_timeout must be > 0 or None, got {self.snapshot_timeout}")

        if not _validate_optional_timeout(self.lock_timeout):
            errors.append(f"lock_timeout must be > 0 or None, got {self.lock_timeout}")

        if not self.archive_prefix or any(c in self.archive_prefix for c in "/\\:"):
            errors.append(f"Invalid archive_prefix: {self.archive_prefix!r}")

        if not self.lock_extension.startswith("."):
            errors.append(f"lock_extension must start with '.', got {self.lock_extension!r}")

        if not _validate_lvm_size(self.lvm_snapshot_size):
            errors.append(f"Invalid lvm_snapshot_size: {self.lvm_snapshot_size!r}")

        # Raise all errors at once
        if errors:
            from mongosnap.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    def with_updates(self, **kwargs) -> "MongoSnapConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return MongoSnapConfig(**current)
