# src/backup/retention.py - v1
"""Local backup retention: keep the N most recent archives by id."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from docvault.backup.archive import LOCAL_GLOB, is_backup_archive

logger = logging.getLogger(__name__)


class RetentionManager:
    """Prunes old backup archives from the local backup directory.

    Archives already committed stay in the repository history.
    """

    def __init__(self, backup_dir: Path | str, retention: int = 10) -> None:
        if retention < 1:
            raise ValueError(f"retention must be >= 1, got {retention}")
        self._backup_dir = Path(backup_dir).expanduser()
        self._retention = retention

    @property
    def retention(self) -> int:
        return self._retention

    def list_local(self) -> list[Path]:
        """Local archives, newest first."""
        if not self._backup_dir.is_dir():
            return []
        archives = [p for p in self._backup_dir.glob(LOCAL_GLOB) if is_backup_archive(p.name)]
        return sorted(archives, key=lambda p: p.name, reverse=True)

    async def prune(self) -> list[Path]:
        """Delete all but the newest archives; return the deleted paths."""
        return await asyncio.to_thread(self._prune)

    def _prune(self) -> list[Path]:
        removed = self.list_local()[self._retention:]
        for path in removed:
            path.unlink()
            logger.info("Removed old backup: %s", path.name)
        return removed
