# src/store/json_store.py - v1
"""JSON file-based document store.

The whole store lives in one JSON file: one list per category plus the
backup metadata log. The file doubles as the store snapshot placed in
backup archives. Writes go through a temp file and an atomic rename.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from docvault.documents.models import (
    BackupMetadata,
    Category,
    Document,
    DocumentFilters,
    utcnow,
)
from docvault.store.base_document_store import BaseDocumentStore

logger = logging.getLogger(__name__)

BACKUP_METADATA_KEY = "backup_metadata"


class JsonDocumentStore(BaseDocumentStore):
    """Document store persisted as a single JSON file."""

    def __init__(self, db_path: Path | str) -> None:
        self._path = Path(db_path).expanduser()
        self._documents: dict[Category, dict[str, Document]] = _empty_collections()
        self._backups: list[BackupMetadata] = []
        if self._path.exists():
            self._load(self._path.read_bytes())

    @property
    def path(self) -> Path:
        return self._path

    @property
    def snapshot_name(self) -> str:
        return self._path.name

    async def get_document(self, category: Category, document_id: str) -> Document | None:
        doc = self._documents[Category(category)].get(document_id)
        return doc.model_copy(deep=True) if doc is not None else None

    async def get_documents(
        self, category: Category, filters: DocumentFilters | None = None
    ) -> list[Document]:
        filters = filters or DocumentFilters()
        docs = list(self._documents[Category(category)].values())

        if filters.status is not None:
            docs = [d for d in docs if d.workflow.status == filters.status]
        if filters.year is not None:
            docs = [d for d in docs if d.year == filters.year]
        if filters.offset:
            docs = docs[filters.offset:]
        if filters.limit is not None:
            docs = docs[: filters.limit]

        return [d.model_copy(deep=True) for d in docs]

    async def upsert_document(
        self, category: Category, document_id: str, document: Document
    ) -> Document:
        cat = Category(category)
        if document.category != cat or document.id != document_id:
            raise ValueError(
                f"Document {document.category.value}/{document.id} "
                f"cannot be stored as {cat.value}/{document_id}"
            )
        collection = self._documents[cat]
        stored = document.model_copy(deep=True)
        existing = collection.get(document_id)
        if existing is not None:
            stored.created_at = existing.created_at
        stored.updated_at = utcnow()
        collection[document_id] = stored
        self._persist()
        return stored.model_copy(deep=True)

    async def get_document_count(self, category: Category | None = None) -> int:
        if category is not None:
            return len(self._documents[Category(category)])
        return sum(len(c) for c in self._documents.values())

    async def get_counts_by_category(self) -> dict[str, int]:
        return {cat.value: len(docs) for cat, docs in self._documents.items()}

    async def save_backup_metadata(self, meta: BackupMetadata) -> None:
        self._backups.append(meta)
        self._persist()

    async def get_last_backup(self) -> BackupMetadata | None:
        # Records are appended in creation order.
        return self._backups[-1] if self._backups else None

    async def list_backups(self) -> list[BackupMetadata]:
        return list(self._backups)

    async def snapshot_exists(self) -> bool:
        return self._path.exists()

    async def export_snapshot(self) -> bytes:
        return self._serialize()

    async def restore_snapshot(self, data: bytes) -> None:
        self._load(data)
        self._persist()
        logger.info(
            "Restored store snapshot: %d documents, %d backup records",
            await self.get_document_count(), len(self._backups),
        )

    # --- internals ---

    def _load(self, raw: bytes) -> None:
        """Parse and validate a serialized store, then swap it in."""
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"Store snapshot is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ValueError("Store snapshot must be a JSON object")

        documents = _empty_collections()
        try:
            for cat in Category:
                for item in payload.get(cat.value, []):
                    doc = Document.model_validate(item)
                    if doc.category != cat:
                        raise ValueError(
                            f"{doc.category.value} document {doc.id!r} "
                            f"found in {cat.value} collection"
                        )
                    documents[cat][doc.id] = doc
            backups = [
                BackupMetadata.model_validate(item)
                for item in payload.get(BACKUP_METADATA_KEY, [])
            ]
        except ValidationError as e:
            raise ValueError(f"Store snapshot failed validation: {e}") from e

        self._documents = documents
        self._backups = backups

    def _serialize(self) -> bytes:
        payload: dict[str, Any] = {
            cat.value: [d.model_dump(mode="json") for d in docs.values()]
            for cat, docs in self._documents.items()
        }
        payload[BACKUP_METADATA_KEY] = [b.model_dump(mode="json") for b in self._backups]
        return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        tmp_path.write_bytes(self._serialize())
        os.replace(tmp_path, self._path)


def _empty_collections() -> dict[Category, dict[str, Document]]:
    return {cat: {} for cat in Category}
