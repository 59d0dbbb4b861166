# src/backup/hydrator.py - v1
"""Hydrate: restore store and content from the latest (or a named) backup."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Literal

from docvault.backup.archive import (
    ARCHIVE_GLOB,
    ARCHIVE_SUFFIX,
    BackupArchive,
    is_backup_archive,
)
from docvault.backup.models import HydrateResult
from docvault.content.content_store import count_content_files
from docvault.core.errors import ArchiveError, NoBackupFoundError
from docvault.logging.context import set_backup_context
from docvault.store.base_document_store import BaseDocumentStore
from docvault.vcs.base_vcs import BaseVersionControl

logger = logging.getLogger(__name__)


class Hydrator:
    """Locates a backup archive and restores it into local state."""

    def __init__(
        self,
        store: BaseDocumentStore,
        vcs: BaseVersionControl,
        content_root: Path,
        archive_root: Path,
        backup_dir: Path,
        mode: Literal["merge", "replace"] = "merge",
    ) -> None:
        self._store = store
        self._vcs = vcs
        self._content_root = content_root
        self._archive_root = archive_root
        self._backup_dir = backup_dir
        self._mode = mode

    async def hydrate(self, backup_id: str | None = None) -> HydrateResult:
        """Restore from a backup.

        Without ``backup_id`` the newest tracked archive is used, and having
        none is not an error. A named backup that cannot be found raises
        NoBackupFoundError.
        """
        set_backup_context("hydrate", backup_id)
        if backup_id is None:
            located = await self._locate_latest()
            if located is None:
                logger.info("No backup found in repository, nothing to restore")
                return HydrateResult()
        else:
            located = await self._locate_named(backup_id)
        source, data = located

        archive = await asyncio.to_thread(BackupArchive.open, data, self._store.snapshot_name)
        if archive.snapshot is not None:
            try:
                await self._store.restore_snapshot(archive.snapshot)
            except ValueError as e:
                raise ArchiveError(f"Store snapshot in {source} is invalid: {e}") from e
        written = await asyncio.to_thread(
            archive.extract_trees,
            self._content_root,
            self._archive_root,
            self._mode == "replace",
        )

        counts = await self._store.get_counts_by_category()
        content_files = await asyncio.to_thread(count_content_files, self._content_root)
        logger.info(
            "Restored from %s: %d documents, %d files extracted",
            source, sum(counts.values()), written,
        )
        return HydrateResult(
            restored_from=source,
            collections_restored=[name for name, count in counts.items() if count > 0],
            documents_restored=sum(counts.values()),
            content_files_restored=content_files,
        )

    async def _tracked_archives(self) -> list[str]:
        tracked = await self._vcs.list_tracked_files(ARCHIVE_GLOB)
        return [p for p in tracked if is_backup_archive(PurePosixPath(p).name)]

    async def _locate_latest(self) -> tuple[str, bytes] | None:
        await self._vcs.fetch()
        tracked = await self._tracked_archives()
        if not tracked:
            return None
        latest = max(tracked, key=lambda p: PurePosixPath(p).name)
        return latest, await self._vcs.read_file_at_head(latest)

    async def _locate_named(self, backup_id: str) -> tuple[str, bytes]:
        file_name = backup_id if backup_id.endswith(ARCHIVE_SUFFIX) else f"{backup_id}{ARCHIVE_SUFFIX}"
        for path in await self._tracked_archives():
            if PurePosixPath(path).name == file_name:
                return path, await self._vcs.read_file_at_head(path)

        local = self._backup_dir / file_name
        if local.is_file():
            logger.info("Backup %s is not tracked, restoring local copy", file_name)
            return str(local), local.read_bytes()
        raise NoBackupFoundError(backup_id)
