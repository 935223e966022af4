# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
mongosnap Archive - Writing, reading and safety-relocating data files.

Known limitations:

- write_archive only packages the top level of the source directory and
  stores every entry by file name alone. Subdirectories (journal/,
  diagnostic.data/, per-database directories) are NOT archived. This is
  valid for single-directory data stores only.
- extract_archive honours full relative entry paths. An archive written by
  write_archive therefore restores flat; nested structure only comes back
  from archives produced elsewhere.
- A write that fails midway can leave a partial archive at dest_path; it
  is not removed.
"""

import asyncio
import zipfile
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any, List

import aiofiles.os
import structlog

from mongosnap.exceptions import ArchiveError

logger = structlog.get_logger()

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
RELOCATION_SUFFIX = "_data_backup_"


def archive_name(prefix: str, when: datetime) -> str:
    """Deterministic archive file name for a run started at when."""
    return f"{prefix}_{when.strftime(TIMESTAMP_FORMAT)}.zip"


def relocation_path(target_dir: Path, when: datetime) -> Path:
    """Sibling path a data directory is moved to before restore."""
    return target_dir.with_name(f"{target_dir.name}{RELOCATION_SUFFIX}{when.strftime(TIMESTAMP_FORMAT)}")


def _write_flat_zip(source_dir: Path, dest_path: Path, exclude_extension: str) -> List[str]:
    """Synchronous zip writer; runs in an executor."""
    written: List[str] = []
    with zipfile.ZipFile(dest_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for entry in sorted(source_dir.iterdir()):
            if not entry.is_file():
                continue
            if entry.suffix == exclude_extension:
                continue
            zf.write(entry, arcname=entry.name)
            written.append(entry.name)
    return written


async def write_archive(
    source_dir: Path,
    dest_path: Path,
    exclude_extension: str = ".lock",
    log: Any = None,
) -> List[str]:
    """
    Package the immediate files of source_dir into a flat ZIP archive.

    Args:
        source_dir: Directory to package (typically inside a snapshot)
        dest_path: Archive path; its parent is created if missing and an
            existing file there is replaced
        exclude_extension: Extension of transient lock markers to skip

    Returns:
        Entry names written, in archive order

    Raises:
        ArchiveError: If the destination cannot be prepared or writing fails
    """
    log = log or logger
    source_dir = Path(source_dir)
    dest_path = Path(dest_path)

    try:
        await aiofiles.os.makedirs(dest_path.parent, exist_ok=True)
    except OSError as e:
        raise ArchiveError(
            f"Failed to create archive directory: {e}",
            details={"dest_path": str(dest_path)},
        ) from e

    if await aiofiles.os.path.exists(dest_path):
        try:
            await aiofiles.os.remove(dest_path)
        except OSError as e:
            raise ArchiveError(
                f"Failed to delete existing archive '{dest_path}': {e}",
                details={"dest_path": str(dest_path)},
            ) from e

    log.info("archive_writing", source_dir=str(source_dir), dest_path=str(dest_path))

    loop = asyncio.get_running_loop()
    try:
        written = await loop.run_in_executor(
            None, _write_flat_zip, source_dir, dest_path, exclude_extension
        )
    except (OSError, zipfile.BadZipFile) as e:
        raise ArchiveError(
            f"Failed to write archive: {e}",
            details={"source_dir": str(source_dir), "dest_path": str(dest_path)},
        ) from e

    stat = await aiofiles.os.stat(dest_path)
    log.info(
        "archive_written",
        dest_path=str(dest_path),
        entries=len(written),
        size=stat.st_size,
    )
    return written


def _check_member_name(name: str) -> None:
    path = PurePosixPath(name.replace("\\", "/"))
    if path.is_absolute() or ".." in path.parts or (path.parts and ":" in path.parts[0]):
        raise ArchiveError(f"Unsafe path in archive: {name}", details={"entry": name})


def _list_safe_members(archive_path: Path) -> List[str]:
    with zipfile.ZipFile(archive_path, "r") as zf:
        names = [member.filename for member in zf.infolist()]
    for name in names:
        _check_member_name(name)
    return names


async def inspect_archive(archive_path: Path) -> List[str]:
    """
    Read the archive's entry names and check that each one is safe to extract.

    Nothing is written; restore calls this before touching the service or
    the data directory.

    Returns:
        Entry names in archive order

    Raises:
        ArchiveError: If the archive is unreadable or contains unsafe paths
    """
    archive_path = Path(archive_path)
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, _list_safe_members, archive_path)
    except ArchiveError:
        raise
    except (OSError, zipfile.BadZipFile) as e:
        raise ArchiveError(
            f"Failed to read archive: {e}",
            details={"archive_path": str(archive_path)},
        ) from e


def _extract_zip(archive_path: Path, target_dir: Path) -> List[str]:
    """Synchronous extraction; runs in an executor."""
    extracted: List[str] = []
    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.infolist()

        # Security: reject path traversal before touching the filesystem
        for member in members:
            _check_member_name(member.filename)

        for member in members:
            relative = PurePosixPath(member.filename.replace("\\", "/"))
            destination = target_dir.joinpath(*relative.parts)
            if member.is_dir():
                destination.mkdir(parents=True, exist_ok=True)
                continue
            destination.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(member) as src, open(destination, "wb") as dst:
                while chunk := src.read(1024 * 1024):
                    dst.write(chunk)
            extracted.append(relative.as_posix())
    return extracted


async def extract_archive(archive_path: Path, target_dir: Path, log: Any = None) -> List[str]:
    """
    Extract every entry under target_dir, keeping relative paths.

    Intermediate directories are created and existing files overwritten.

    Returns:
        Relative paths of the extracted files

    Raises:
        ArchiveError: If the archive is unreadable or contains unsafe paths
    """
    log = log or logger
    archive_path = Path(archive_path)
    target_dir = Path(target_dir)

    loop = asyncio.get_running_loop()
    try:
        await aiofiles.os.makedirs(target_dir, exist_ok=True)
        extracted = await loop.run_in_executor(None, _extract_zip, archive_path, target_dir)
    except ArchiveError:
        raise
    except (OSError, zipfile.BadZipFile) as e:
        raise ArchiveError(
            f"Failed to extract archive: {e}",
            details={"archive_path": str(archive_path), "target_dir": str(target_dir)},
        ) from e

    log.info(
        "archive_extracted",
        archive_path=str(archive_path),
        target_dir=str(target_dir),
        files=len(extracted),
    )
    return extracted


async def relocate_data_directory(target_dir: Path, when: datetime, log: Any = None) -> Path | None:
    """
    Move a non-empty data directory aside and recreate it empty.

    The directory is renamed to <target_dir>_data_backup_<timestamp>. A
    missing directory is created; an empty one is left in place.

    Returns:
        The relocation path, or None if nothing was moved

    Raises:
        ArchiveError: If the rename or re-creation fails
    """
    log = log or logger
    target_dir = Path(target_dir)

    try:
        if not await aiofiles.os.path.exists(target_dir):
            await aiofiles.os.makedirs(target_dir, exist_ok=True)
            log.info("data_directory_created", path=str(target_dir))
            return None

        if not await aiofiles.os.listdir(target_dir):
            return None

        relocated = relocation_path(target_dir, when)
        if await aiofiles.os.path.exists(relocated):
            raise ArchiveError(
                f"Relocation target already exists: {relocated}",
                details={"target_dir": str(target_dir)},
            )

        await aiofiles.os.rename(target_dir, relocated)
        await aiofiles.os.makedirs(target_dir, exist_ok=False)
        moved = await aiofiles.os.listdir(relocated)
    except OSError as e:
        raise ArchiveError(
            f"Failed to relocate data directory: {e}",
            details={"target_dir": str(target_dir)},
        ) from e

    log.info(
        "data_directory_relocated",
        path=str(target_dir),
        relocated_to=str(relocated),
        entries=len(moved),
    )
    return relocated
