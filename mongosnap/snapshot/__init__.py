# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Snapshot Layer - Volume-level point-in-time snapshots.
"""

from mongosnap.snapshot.base import (
    SnapshotHandle,
    SnapshotProvider,
    release_snapshot,
    snapshot_scope,
)

__all__ = [
    "SnapshotHandle",
    "SnapshotProvider",
    "release_snapshot",
    "snapshot_scope",
]
