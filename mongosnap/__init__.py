# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
mongosnap - Point-in-time backup and restore of MongoDB data files.

Backups quiesce the database with an fsync lock, snapshot the volume that
holds the data directory and archive the files from the snapshot, so the
lock is held only for the snapshot's lifetime. Restores stop the service,
move the live data aside, extract the archive and bring the service back.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from mongosnap.builder import create_config

# Core functions
from mongosnap.core import (
    run_backup,
    run_restore,
    list_snapshots,
    delete_snapshots,
)

# Environment-based configuration
from mongosnap.env import create_config_from_env

from mongosnap.backup import BackupResult, RestoreResult

__all__ = [
    # Version
    "__version__",
    # Configuration creation
    "create_config",
    "create_config_from_env",
    # Core operations
    "run_backup",
    "run_restore",
    "list_snapshots",
    "delete_snapshots",
    # Results
    "BackupResult",
    "RestoreResult",
]
