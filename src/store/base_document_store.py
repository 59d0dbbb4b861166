# src/store/base_document_store.py - v1
"""Abstract document store interface.

The workflow engine and the backup engine only depend on this contract;
the storage engine behind it is interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docvault.documents.models import (
    BackupMetadata,
    Category,
    Document,
    DocumentFilters,
)


class BaseDocumentStore(ABC):
    """Unified interface for document store backends."""

    @property
    @abstractmethod
    def snapshot_name(self) -> str:
        """File name of the store snapshot inside a backup archive."""

    @abstractmethod
    async def get_document(self, category: Category, document_id: str) -> Document | None:
        """Retrieve a document, or None when absent."""

    @abstractmethod
    async def get_documents(
        self, category: Category, filters: DocumentFilters | None = None
    ) -> list[Document]:
        """List documents of a category, filtered by status / year, paged."""

    @abstractmethod
    async def upsert_document(
        self, category: Category, document_id: str, document: Document
    ) -> Document:
        """Insert or fully replace a document."""

    @abstractmethod
    async def get_document_count(self, category: Category | None = None) -> int:
        """Count documents in one category, or across all categories."""

    @abstractmethod
    async def get_counts_by_category(self) -> dict[str, int]:
        """Document count for every category (zero included)."""

    @abstractmethod
    async def save_backup_metadata(self, meta: BackupMetadata) -> None:
        """Append a backup metadata record."""

    @abstractmethod
    async def get_last_backup(self) -> BackupMetadata | None:
        """Most recently created backup record."""

    @abstractmethod
    async def list_backups(self) -> list[BackupMetadata]:
        """All backup records, oldest first."""

    @abstractmethod
    async def snapshot_exists(self) -> bool:
        """Whether the store has ever been persisted locally."""

    @abstractmethod
    async def export_snapshot(self) -> bytes:
        """Serialize the full store."""

    @abstractmethod
    async def restore_snapshot(self, data: bytes) -> None:
        """Replace the full store with a serialized snapshot.

        Raises:
            ValueError: If the snapshot cannot be parsed or validated.
        """
