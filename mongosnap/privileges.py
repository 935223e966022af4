# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Privilege checks.

Volume snapshots and service control both need an elevated process:
root on POSIX hosts, an Administrator token on Windows.
"""

import os
import sys

import structlog

from mongosnap.errors import explain_not_elevated
from mongosnap.exceptions import PrivilegeError

logger = structlog.get_logger()


def is_running_as_admin() -> bool:
    """Return True when the current process is elevated."""
    if sys.platform == "win32":
        try:
            import ctypes

            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        except (AttributeError, OSError) as e:
            logger.error("privilege_check_failed", error=str(e))
            return False
    return os.geteuid() == 0


def require_admin() -> None:
    """
    Raise PrivilegeError unless the process is elevated.

    Raises:
        PrivilegeError: If the process is not elevated
    """
    if not is_running_as_admin():
        raise PrivilegeError(explain_not_elevated())
