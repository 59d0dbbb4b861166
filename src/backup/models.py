# src/backup/models.py - v1
"""Results returned by dehydrate, hydrate and backup status."""

from __future__ import annotations

from pydantic import BaseModel, Field

from docvault.documents.models import BackupMetadata


class DehydrateResult(BaseModel):
    backup_id: str
    files_archived: int
    size_bytes: int
    compressed_size_bytes: int
    commit_hash: str
    total_documents: int


class HydrateResult(BaseModel):
    """Counts are read back from local state after extraction."""

    restored_from: str | None = None
    collections_restored: list[str] = Field(default_factory=list)
    documents_restored: int = 0
    content_files_restored: int = 0


class BackupStatus(BaseModel):
    last_backup: BackupMetadata | None = None
    has_local_data: bool
    total_documents: int
    counts_by_category: dict[str, int] = Field(default_factory=dict)
    local_data_size_bytes: int = 0
    local_backups: int = 0
