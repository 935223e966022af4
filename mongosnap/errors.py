# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for mongosnap.

These helpers centralize wording for common configuration and validation
errors so that all modules present consistent, actionable messages.
"""


def explain_not_elevated() -> str:
    """
    Explain that snapshots need an elevated process.
    """

    return (
        "This application must be run with administrative privileges "
        "(root or an elevated Administrator prompt) to create volume snapshots "
        "and control the database service."
    )


def explain_missing_db_path() -> str:
    """
    Explain that the server did not report its data directory.
    """

    return (
        "Failed to retrieve the database data directory (parsed.storage.dbPath). "
        "Start mongod with an explicit --dbpath or storage.dbPath setting, "
        "or set MONGOSNAP_DATA_DIRECTORY."
    )


def explain_invalid_timeout_env(name: str, value: str | None) -> str:
    """
    Explain that a timeout environment variable is invalid.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "It must be a positive number of seconds, or empty for no timeout."
    )


def explain_invalid_snapshot_backend_env(value: str | None) -> str:
    """
    Explain that MONGOSNAP_SNAPSHOT_BACKEND is invalid.
    """

    return (
        f"Invalid MONGOSNAP_SNAPSHOT_BACKEND value: {value!r}. "
        "Expected one of: 'auto', 'lvm', or 'vss'."
    )


def explain_invalid_service_backend_env(value: str | None) -> str:
    """
    Explain that MONGOSNAP_SERVICE_BACKEND is invalid.
    """

    return (
        f"Invalid MONGOSNAP_SERVICE_BACKEND value: {value!r}. "
        "Expected one of: 'auto', 'systemd', or 'windows'."
    )


def explain_unsupported_platform(capability: str, platform: str) -> str:
    """
    Explain that no backend exists for the current platform.
    """

    return (
        f"No {capability} backend is available for platform {platform!r}. "
        "Select one explicitly in the configuration."
    )
