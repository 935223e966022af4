# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Service Layer - Stop/start the database engine's host service.
"""

from mongosnap.service.base import (
    ServiceController,
    ServiceState,
    ServiceStatus,
    ensure_running,
)

__all__ = [
    "ServiceController",
    "ServiceState",
    "ServiceStatus",
    "ensure_running",
]
