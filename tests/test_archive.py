# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for archive writing, extraction and data directory relocation.
"""

import zipfile
from datetime import datetime
from pathlib import Path

import pytest

from mongosnap.backup.archive import (
    archive_name,
    extract_archive,
    inspect_archive,
    relocate_data_directory,
    relocation_path,
    write_archive,
)
from mongosnap.exceptions import ArchiveError

WHEN = datetime(2024, 1, 2, 3, 4, 5)


def test_archive_name_is_timestamped():
    assert archive_name("mongodb_backup", WHEN) == "mongodb_backup_20240102_030405.zip"


def test_relocation_path_is_sibling():
    assert relocation_path(Path("/var/lib/mongo"), WHEN) == Path("/var/lib/mongo_data_backup_20240102_030405")


# ============================================================================
# write_archive
# ============================================================================


@pytest.mark.asyncio
async def test_write_archive_is_flat_and_skips_lock_files(temp_dir: Path):
    source = temp_dir / "src"
    source.mkdir()
    (source / "a.wt").write_bytes(b"a")
    (source / "b.wt").write_bytes(b"b")
    (source / "mongod.lock").write_bytes(b"")
    (source / "nested").mkdir()
    (source / "nested" / "deep.wt").write_bytes(b"deep")

    dest = temp_dir / "out" / "backup.zip"
    written = await write_archive(source, dest)

    assert written == ["a.wt", "b.wt"]
    with zipfile.ZipFile(dest) as zf:
        assert sorted(zf.namelist()) == ["a.wt", "b.wt"]
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())


@pytest.mark.asyncio
async def test_write_archive_replaces_existing_file(temp_dir: Path):
    source = temp_dir / "src"
    source.mkdir()
    (source / "new.wt").write_bytes(b"new")
    dest = temp_dir / "backup.zip"
    with zipfile.ZipFile(dest, "w") as zf:
        zf.writestr("old.wt", "old")

    await write_archive(source, dest)

    with zipfile.ZipFile(dest) as zf:
        assert zf.namelist() == ["new.wt"]


@pytest.mark.asyncio
async def test_write_archive_missing_source_raises(temp_dir: Path):
    with pytest.raises(ArchiveError):
        await write_archive(temp_dir / "missing", temp_dir / "backup.zip")


# ============================================================================
# extract_archive
# ============================================================================


@pytest.mark.asyncio
async def test_extract_keeps_relative_paths_and_overwrites(temp_dir: Path):
    archive = temp_dir / "backup.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("a.txt", "new a")
        zf.writestr("b/c.txt", "c")
    target = temp_dir / "target"
    target.mkdir()
    (target / "a.txt").write_text("old a")

    extracted = await extract_archive(archive, target)

    assert sorted(extracted) == ["a.txt", "b/c.txt"]
    assert (target / "a.txt").read_text() == "new a"
    assert (target / "b" / "c.txt").read_text() == "c"


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["../evil.txt", "/etc/evil", "ok/../../evil", "C:/evil.txt"])
async def test_extract_rejects_unsafe_paths(temp_dir: Path, name: str):
    archive = temp_dir / "backup.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("safe.txt", "fine")
        zf.writestr(name, "evil")
    target = temp_dir / "target"

    with pytest.raises(ArchiveError, match="Unsafe path"):
        await extract_archive(archive, target)

    # Nothing is written when any entry is unsafe
    assert not (target / "safe.txt").exists()


@pytest.mark.asyncio
async def test_extract_corrupt_archive_raises(temp_dir: Path):
    archive = temp_dir / "backup.zip"
    archive.write_bytes(b"garbage")

    with pytest.raises(ArchiveError):
        await extract_archive(archive, temp_dir / "target")


@pytest.mark.asyncio
async def test_inspect_lists_entries_without_writing(temp_dir: Path):
    archive = temp_dir / "backup.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("a.txt", "a")
        zf.writestr("b/c.txt", "c")

    assert await inspect_archive(archive) == ["a.txt", "b/c.txt"]
    assert sorted(p.name for p in temp_dir.iterdir()) == ["backup.zip"]


@pytest.mark.asyncio
async def test_inspect_rejects_unsafe_paths(temp_dir: Path):
    archive = temp_dir / "backup.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("safe.txt", "fine")
        zf.writestr("../evil.txt", "evil")

    with pytest.raises(ArchiveError, match="Unsafe path"):
        await inspect_archive(archive)


@pytest.mark.asyncio
async def test_inspect_corrupt_archive_raises(temp_dir: Path):
    archive = temp_dir / "backup.zip"
    archive.write_bytes(b"garbage")

    with pytest.raises(ArchiveError, match="Failed to read archive"):
        await inspect_archive(archive)


# ============================================================================
# relocate_data_directory
# ============================================================================


@pytest.mark.asyncio
async def test_relocate_moves_contents_aside(temp_dir: Path):
    target = temp_dir / "data"
    target.mkdir()
    (target / "x.wt").write_text("x")

    relocated = await relocate_data_directory(target, WHEN)

    assert relocated == temp_dir / "data_data_backup_20240102_030405"
    assert (relocated / "x.wt").read_text() == "x"
    assert target.is_dir()
    assert list(target.iterdir()) == []


@pytest.mark.asyncio
async def test_relocate_creates_missing_directory(temp_dir: Path):
    target = temp_dir / "data"

    assert await relocate_data_directory(target, WHEN) is None
    assert target.is_dir()


@pytest.mark.asyncio
async def test_relocate_leaves_empty_directory(temp_dir: Path):
    target = temp_dir / "data"
    target.mkdir()

    assert await relocate_data_directory(target, WHEN) is None
    assert not (temp_dir / "data_data_backup_20240102_030405").exists()


@pytest.mark.asyncio
async def test_relocate_refuses_to_clobber(temp_dir: Path):
    target = temp_dir / "data"
    target.mkdir()
    (target / "x.wt").write_text("x")
    (temp_dir / "data_data_backup_20240102_030405").mkdir()

    with pytest.raises(ArchiveError, match="already exists"):
        await relocate_data_directory(target, WHEN)
    assert (target / "x.wt").exists()
