# src/backup/archive.py - v1
"""Backup archive format.

A backup is a deflated zip holding:
    <snapshot name>   store snapshot, at the archive root
    content/...       converted-content tree
    archive/...       re-run archive tree

Backup ids sort lexicographically in creation order.
"""

from __future__ import annotations

import io
import logging
import shutil
import zipfile
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePosixPath

from docvault.content.content_store import iter_files
from docvault.core.errors import ArchiveError

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "backup_"
ARCHIVE_SUFFIX = ".zip"
# Coarse git pathspec; candidates are then checked with is_backup_archive.
ARCHIVE_GLOB = f"*{BACKUP_PREFIX}*{ARCHIVE_SUFFIX}"
LOCAL_GLOB = f"{BACKUP_PREFIX}*{ARCHIVE_SUFFIX}"
CONTENT_PREFIX = "content/"
ARCHIVE_PREFIX = "archive/"


def generate_backup_id(now: datetime) -> str:
    """``backup_YYYYMMDD_HHMMSS_ffffff`` for a UTC timestamp."""
    return f"{BACKUP_PREFIX}{now.strftime('%Y%m%d_%H%M%S_%f')}"


def parse_backup_id(backup_id: str) -> datetime:
    """Creation time encoded in a backup id; ValueError if it is not one."""
    if not backup_id.startswith(BACKUP_PREFIX):
        raise ValueError(f"Not a backup id: {backup_id!r}")
    ts = datetime.strptime(backup_id[len(BACKUP_PREFIX):], "%Y%m%d_%H%M%S_%f")
    return ts.replace(tzinfo=timezone.utc)


def is_backup_archive(file_name: str) -> bool:
    """True for ``backup_YYYYMMDD_HHMMSS_ffffff.zip`` (a base name, not a path)."""
    if not file_name.endswith(ARCHIVE_SUFFIX):
        return False
    backup_id = file_name[: -len(ARCHIVE_SUFFIX)]
    try:
        ts = parse_backup_id(backup_id)
    except ValueError:
        return False
    return generate_backup_id(ts) == backup_id


def next_backup_id(backup_dir: Path, now: datetime) -> str:
    """Backup id for ``now``, kept later than every local archive.

    A clash with an existing id is bumped by one microsecond.
    """
    latest: datetime | None = None
    if backup_dir.is_dir():
        for path in backup_dir.glob(LOCAL_GLOB):
            if not is_backup_archive(path.name):
                continue
            ts = parse_backup_id(path.name[: -len(ARCHIVE_SUFFIX)])
            if latest is None or ts > latest:
                latest = ts
    if latest is not None and generate_backup_id(now) <= generate_backup_id(latest):
        now = latest + timedelta(microseconds=1)
    return generate_backup_id(now)


def build_archive(
    zip_path: Path,
    snapshot_name: str,
    snapshot: bytes,
    content_root: Path,
    archive_root: Path,
) -> int:
    """Write a backup archive and return the number of files it holds.

    The zip is written next to its final path and renamed into place.
    """
    zip_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = zip_path.with_name(f"{zip_path.name}.tmp")
    files = 0
    try:
        with zipfile.ZipFile(tmp_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(snapshot_name, snapshot)
            files += 1
            for prefix, root in ((CONTENT_PREFIX, content_root), (ARCHIVE_PREFIX, archive_root)):
                for path in iter_files(root):
                    zf.write(path, prefix + path.relative_to(root).as_posix())
                    files += 1
        tmp_path.replace(zip_path)
    finally:
        tmp_path.unlink(missing_ok=True)
    return files


@dataclass
class BackupArchive:
    """A validated backup archive, opened from bytes."""

    snapshot: bytes | None
    content_entries: list[tuple[str, zipfile.ZipInfo]] = field(default_factory=list)
    archive_entries: list[tuple[str, zipfile.ZipInfo]] = field(default_factory=list)
    _zip: zipfile.ZipFile | None = field(default=None, repr=False)

    @classmethod
    def open(cls, data: bytes, snapshot_name: str) -> BackupArchive:
        """Parse and validate every entry before anything is written.

        Raises:
            ArchiveError: corrupt zip, unsafe entry path, or no
                recognizable entries.
        """
        try:
            zf = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as e:
            raise ArchiveError(f"Backup archive is corrupt: {e}") from e

        archive = cls(snapshot=None, _zip=zf)
        for info in zf.infolist():
            if info.is_dir():
                continue
            name = _safe_name(info.filename)
            if name == snapshot_name:
                archive.snapshot = _read(zf, info)
            elif name.startswith(CONTENT_PREFIX):
                archive.content_entries.append((name[len(CONTENT_PREFIX):], info))
            elif name.startswith(ARCHIVE_PREFIX):
                archive.archive_entries.append((name[len(ARCHIVE_PREFIX):], info))
            else:
                logger.debug("Ignoring unrecognized archive entry: %s", name)

        if archive.snapshot is None and not archive.content_entries:
            raise ArchiveError(
                f"Backup archive holds neither {snapshot_name!r} nor content entries"
            )
        return archive

    def extract_trees(self, content_root: Path, archive_root: Path, replace: bool = False) -> int:
        """Write content and re-run archive entries; return the number written.

        Existing files are overwritten. With ``replace`` both trees are
        cleared first.
        """
        if replace:
            for root in (content_root, archive_root):
                if root.exists():
                    shutil.rmtree(root)
        written = 0
        for root, entries in (
            (content_root, self.content_entries),
            (archive_root, self.archive_entries),
        ):
            for rel, info in entries:
                target = root / rel
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(_read(self._zip, info))
                written += 1
        return written


def _safe_name(name: str) -> str:
    """Normalize an entry name, rejecting absolute paths and ``..`` segments."""
    normalized = name.replace("\\", "/")
    path = PurePosixPath(normalized)
    if path.is_absolute() or ".." in path.parts or (path.parts and ":" in path.parts[0]):
        raise ArchiveError(f"Unsafe path in backup archive: {name!r}")
    return path.as_posix()


def _read(zf: zipfile.ZipFile | None, info: zipfile.ZipInfo) -> bytes:
    if zf is None:
        raise ArchiveError("Backup archive is not open")
    try:
        return zf.read(info)
    except (zipfile.BadZipFile, zlib.error, EOFError) as e:
        raise ArchiveError(f"Backup archive entry {info.filename!r} is corrupt: {e}") from e
