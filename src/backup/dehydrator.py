# src/backup/dehydrator.py - v1
"""Dehydrate: snapshot store and content into a zip and commit it."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from docvault.backup.archive import ARCHIVE_SUFFIX, build_archive, next_backup_id
from docvault.backup.models import DehydrateResult
from docvault.backup.retention import RetentionManager
from docvault.content.content_store import tree_size
from docvault.core.errors import VersionControlError
from docvault.documents.models import BackupMetadata, utcnow
from docvault.logging.context import set_backup_context
from docvault.store.base_document_store import BaseDocumentStore
from docvault.vcs.base_vcs import BaseVersionControl

logger = logging.getLogger(__name__)

UNCOMMITTED = "uncommitted"


class Dehydrator:
    """Builds a backup archive, commits it and applies retention."""

    def __init__(
        self,
        store: BaseDocumentStore,
        vcs: BaseVersionControl,
        content_root: Path,
        archive_root: Path,
        backup_dir: Path,
        retention: RetentionManager,
        push_enabled: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._vcs = vcs
        self._content_root = content_root
        self._archive_root = archive_root
        self._backup_dir = backup_dir
        self._retention = retention
        self._push_enabled = push_enabled
        self._clock = clock

    async def dehydrate(self) -> DehydrateResult:
        now = self._clock()
        backup_id = next_backup_id(self._backup_dir, now)
        set_backup_context("dehydrate", backup_id)
        zip_path = self._backup_dir / f"{backup_id}{ARCHIVE_SUFFIX}"

        snapshot = await self._store.export_snapshot()
        files_archived = await asyncio.to_thread(
            build_archive,
            zip_path,
            self._store.snapshot_name,
            snapshot,
            self._content_root,
            self._archive_root,
        )
        size_bytes = await asyncio.to_thread(tree_size, self._content_root)
        compressed_size_bytes = zip_path.stat().st_size
        total_documents = await self._store.get_document_count()
        logger.info(
            "Archive built: %d files, %d bytes (%d compressed)",
            files_archived, size_bytes, compressed_size_bytes,
        )

        commit_hash = await self._commit(zip_path, backup_id)

        await self._store.save_backup_metadata(
            BackupMetadata(
                backup_id=backup_id,
                created_at=now,
                commit_hash=commit_hash,
                documents_count=total_documents,
                size_bytes=size_bytes,
                compressed_size_bytes=compressed_size_bytes,
            )
        )
        await self._retention.prune()

        return DehydrateResult(
            backup_id=backup_id,
            files_archived=files_archived,
            size_bytes=size_bytes,
            compressed_size_bytes=compressed_size_bytes,
            commit_hash=commit_hash,
            total_documents=total_documents,
        )

    async def _commit(self, zip_path: Path, backup_id: str) -> str:
        """Commit the archive; a failed commit leaves the backup local-only."""
        try:
            await self._vcs.add_and_commit(zip_path, f"Backup: {backup_id}")
            commit_hash = await self._vcs.get_last_commit_hash()
        except VersionControlError as e:
            logger.warning("Backup not committed, kept locally: %s", e)
            return UNCOMMITTED

        if self._push_enabled:
            try:
                await self._vcs.push()
            except VersionControlError as e:
                logger.warning("Push failed, backup committed locally only: %s", e)
        return commit_hash
