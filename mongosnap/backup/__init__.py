# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - Archive handling and the backup/restore state machines.
"""

from mongosnap.backup.archive import (
    archive_name,
    extract_archive,
    relocate_data_directory,
    write_archive,
)

from mongosnap.backup.orchestrator import (
    BackupArchive,
    BackupOrchestrator,
    BackupResult,
    BackupState,
)

from mongosnap.backup.restore import (
    RestoreOrchestrator,
    RestoreResult,
    RestoreState,
)

__all__ = [
    # Archive
    "archive_name",
    "write_archive",
    "extract_archive",
    "relocate_data_directory",
    # Backup
    "BackupArchive",
    "BackupOrchestrator",
    "BackupResult",
    "BackupState",
    # Restore
    "RestoreOrchestrator",
    "RestoreResult",
    "RestoreState",
]
