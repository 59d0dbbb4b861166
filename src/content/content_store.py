# src/content/content_store.py - v1
"""Converted-content tree on the local filesystem.

Layout under the content root:
    {category}/markdown/{year | language | unknown}/{id}[_appendix_N][_conclusion].md

Re-run archives live under a separate archive root:
    re-runs/{original directories}/{stem}_{stamp}{suffix}
"""

from __future__ import annotations

import hashlib
import logging
import shutil
from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any

from docvault.documents.models import Category, utcnow

logger = logging.getLogger(__name__)

MARKDOWN_DIR = "markdown"
RERUNS_DIR = "re-runs"
CONTENT_SUFFIXES = (".md", ".txt")


def archived_content_path(content_path: str, stamp: str) -> str:
    """Map a content-relative path to its re-run archive path.

    ``circulars/markdown/2026/X.md`` with stamp ``20260101T000000000000Z``
    maps to ``re-runs/circulars/markdown/2026/X_20260101T000000000000Z.md``.
    """
    rel = PurePosixPath(content_path)
    if rel.is_absolute() or ".." in rel.parts or not rel.name:
        raise ValueError(f"Not a relative content path: {content_path!r}")
    return PurePosixPath(
        RERUNS_DIR, *rel.parts[:-1], f"{rel.stem}_{stamp}{rel.suffix}"
    ).as_posix()


def iter_files(root: Path) -> Iterator[Path]:
    """All regular files below root, in sorted order."""
    if not root.is_dir():
        return
    for path in sorted(root.rglob("*")):
        if path.is_file():
            yield path


def tree_size(root: Path) -> int:
    """Sum of file sizes below root (0 when absent)."""
    return sum(p.stat().st_size for p in iter_files(root))


def count_content_files(root: Path) -> int:
    """Number of converted-content files (markdown / plain text) below root."""
    return sum(1 for p in iter_files(root) if p.suffix.lower() in CONTENT_SUFFIXES)


class ContentStore:
    """Read, write and archive converted markdown."""

    def __init__(
        self,
        content_root: Path | str,
        archive_root: Path | str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._content_root = Path(content_root).expanduser()
        self._archive_root = Path(archive_root).expanduser()
        self._clock = clock

    @property
    def content_root(self) -> Path:
        return self._content_root

    @property
    def archive_root(self) -> Path:
        return self._archive_root

    def ensure_directories(self) -> None:
        for category in Category:
            (self._content_root / category.value / MARKDOWN_DIR).mkdir(parents=True, exist_ok=True)
        self._archive_root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def markdown_relpath(
        category: Category | str,
        document_id: str,
        year: int | None = None,
        language: str | None = "EN",
        appendix_index: int | None = None,
        is_conclusion: bool = False,
    ) -> str:
        """Content-relative path of a document's markdown file."""
        cat = Category(category)
        if cat == Category.GUIDELINES:
            subdir = language or "EN"
        else:
            subdir = str(year) if year else "unknown"

        name = document_id
        if appendix_index is not None:
            name += f"_appendix_{appendix_index}"
        if is_conclusion:
            name += "_conclusion"
        return PurePosixPath(cat.value, MARKDOWN_DIR, subdir, f"{name}.md").as_posix()

    def resolve(self, content_path: str) -> Path:
        """Absolute path of a content-relative path; refuses to leave the root."""
        rel = PurePosixPath(content_path)
        if rel.is_absolute() or ".." in rel.parts:
            raise ValueError(f"Content path escapes content root: {content_path!r}")
        return self._content_root / rel

    async def save_markdown(
        self,
        category: Category | str,
        document_id: str,
        markdown: str,
        year: int | None = None,
        language: str | None = "EN",
        appendix_index: int | None = None,
        is_conclusion: bool = False,
    ) -> dict[str, Any]:
        """Write markdown and return the content record for the document."""
        rel = self.markdown_relpath(
            category, document_id, year, language, appendix_index, is_conclusion
        )
        path = self.resolve(rel)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = markdown.encode("utf-8")
        path.write_bytes(data)

        return {
            "markdown_path": rel,
            "markdown_size": len(data),
            "markdown_hash": f"sha256:{hashlib.sha256(data).hexdigest()}",
            "word_count": len(markdown.split()),
            "last_converted": self._clock().isoformat(),
        }

    async def get_markdown(self, content_path: str) -> str | None:
        path = self.resolve(content_path)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    async def archive(self, content_path: str) -> str | None:
        """Copy a content file into the re-run archive.

        Returns:
            Archive-relative path of the copy, or None if the source is missing.
        """
        source = self.resolve(content_path)
        if not source.is_file():
            logger.warning("Nothing to archive, content file missing: %s", content_path)
            return None

        stamp = self._clock().strftime("%Y%m%dT%H%M%S%fZ")
        archived = archived_content_path(content_path, stamp)
        target = self._archive_root / archived
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        logger.info("Archived %s -> %s", content_path, archived)
        return archived

    async def stats(self) -> dict[str, Any]:
        """File count and byte size of converted content, per category."""
        by_category: dict[str, dict[str, int]] = {}
        total_files = 0
        total_size = 0
        for category in Category:
            files = 0
            size = 0
            for path in iter_files(self._content_root / category.value / MARKDOWN_DIR):
                if path.suffix.lower() in CONTENT_SUFFIXES:
                    files += 1
                    size += path.stat().st_size
            if files:
                by_category[category.value] = {"files": files, "size": size}
            total_files += files
            total_size += size
        return {"files": total_files, "size": total_size, "by_category": by_category}
