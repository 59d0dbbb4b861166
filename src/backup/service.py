# src/backup/service.py - v1
"""Backup service: serialized dehydrate / hydrate plus startup and shutdown hooks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Literal

from docvault.backup.dehydrator import Dehydrator
from docvault.backup.hydrator import Hydrator
from docvault.backup.models import BackupStatus, DehydrateResult, HydrateResult
from docvault.backup.retention import RetentionManager
from docvault.content.content_store import ContentStore, iter_files, tree_size
from docvault.core.errors import DocVaultError
from docvault.documents.models import utcnow
from docvault.logging.context import clear_context
from docvault.store.base_document_store import BaseDocumentStore
from docvault.vcs.base_vcs import BaseVersionControl

logger = logging.getLogger(__name__)


class BackupService:
    """Owns the dehydrate / hydrate mutex.

    Args:
        store: Document store to snapshot and restore.
        vcs: Version control holding committed archives.
        content_store: Content and re-run archive trees.
        backup_dir: Local directory for backup archives.
        retention: Number of local archives to keep.
        hydrate_mode: ``merge`` overwrites files in place, ``replace``
            clears the content and archive trees first.
        push_enabled: Push after each successful commit.
        auto_hydrate: Hydrate on startup when there is no local data.
        auto_dehydrate: Dehydrate on shutdown.
    """

    def __init__(
        self,
        store: BaseDocumentStore,
        vcs: BaseVersionControl,
        content_store: ContentStore,
        backup_dir: Path | str,
        retention: int = 10,
        hydrate_mode: Literal["merge", "replace"] = "merge",
        push_enabled: bool = False,
        auto_hydrate: bool = True,
        auto_dehydrate: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._vcs = vcs
        self._content = content_store
        self._backup_dir = Path(backup_dir).expanduser()
        self._auto_hydrate = auto_hydrate
        self._auto_dehydrate = auto_dehydrate
        self._lock = asyncio.Lock()
        self._retention = RetentionManager(self._backup_dir, retention)
        self._dehydrator = Dehydrator(
            store,
            vcs,
            content_store.content_root,
            content_store.archive_root,
            self._backup_dir,
            self._retention,
            push_enabled=push_enabled,
            clock=clock,
        )
        self._hydrator = Hydrator(
            store,
            vcs,
            content_store.content_root,
            content_store.archive_root,
            self._backup_dir,
            mode=hydrate_mode,
        )

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    async def dehydrate(self) -> DehydrateResult:
        async with self._lock:
            try:
                result = await self._dehydrator.dehydrate()
            finally:
                clear_context()
        logger.info("Dehydrated %s (%s)", result.backup_id, result.commit_hash)
        return result

    async def hydrate(self, backup_id: str | None = None) -> HydrateResult:
        async with self._lock:
            try:
                return await self._hydrator.hydrate(backup_id)
            finally:
                clear_context()

    async def has_local_data(self) -> bool:
        """True when the store snapshot exists or the content tree holds a file."""
        if await self._store.snapshot_exists():
            return True
        return next(iter_files(self._content.content_root), None) is not None

    async def startup(self) -> None:
        """Prepare directories and hydrate once if there is nothing local."""
        self._content.ensure_directories()
        self._backup_dir.mkdir(parents=True, exist_ok=True)
        if not await self._vcs.is_repo():
            logger.warning("Backups will not be committed: not inside a git repository")
        if not self._auto_hydrate or await self.has_local_data():
            return
        logger.info("No local data found, attempting hydration")
        try:
            result = await self.hydrate()
        except (DocVaultError, OSError) as e:
            logger.error("Hydration on startup failed: %s", e)
            return
        logger.info(
            "Hydration complete: %d documents, %d content files",
            result.documents_restored, result.content_files_restored,
        )

    async def shutdown(self) -> None:
        if not self._auto_dehydrate:
            return
        try:
            await self.dehydrate()
        except (DocVaultError, OSError) as e:
            logger.error("Dehydration on shutdown failed: %s", e)

    async def status(self) -> BackupStatus:
        counts = await self._store.get_counts_by_category()
        return BackupStatus(
            last_backup=await self._store.get_last_backup(),
            has_local_data=await self.has_local_data(),
            total_documents=sum(counts.values()),
            counts_by_category=counts,
            local_data_size_bytes=await asyncio.to_thread(tree_size, self._content.content_root),
            local_backups=len(self._retention.list_local()),
        )
