# tests/conftest.py - v1
"""Shared test fixtures for all unit and integration tests.

Provides settings rooted in tmp_path, a JSON store, a content store, an
in-memory version-control fake and a controllable clock. No network and
no git binary required.
"""

from __future__ import annotations

import fnmatch
import hashlib
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from docvault.config.settings import Settings
from docvault.content.content_store import ContentStore
from docvault.core.errors import VersionControlError
from docvault.documents.models import Category, Document, new_document
from docvault.store.json_store import JsonDocumentStore
from docvault.vcs.base_vcs import BaseVersionControl
from docvault.workflow.engine import WorkflowEngine


# === FAKES ===


class FakeClock:
    """Deterministic clock; advance() moves time forward."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeVersionControl(BaseVersionControl):
    """In-memory repository: committed files are kept as bytes by relative path."""

    def __init__(self, repo_dir: Path) -> None:
        self.repo_dir = repo_dir
        self.tracked: dict[str, bytes] = {}
        self.commits: list[str] = []
        self.fetch_calls = 0
        self.push_calls = 0
        self.fail_commit = False
        self.fail_push = False
        self.fail_fetch = False

    async def add_and_commit(self, path: Path, message: str) -> None:
        if self.fail_commit:
            raise VersionControlError("git commit", "simulated failure", 128)
        rel = Path(path).resolve().relative_to(self.repo_dir.resolve()).as_posix()
        data = Path(path).read_bytes()
        if self.tracked.get(rel) == data:
            return
        self.tracked[rel] = data
        self.commits.append(hashlib.sha1(f"{message}:{len(self.commits)}".encode()).hexdigest())

    async def get_last_commit_hash(self) -> str:
        if not self.commits:
            raise VersionControlError("git rev-parse", "no commits", 128)
        return self.commits[-1]

    async def fetch(self) -> None:
        if self.fail_fetch:
            raise VersionControlError("git fetch", "simulated failure", 128)
        self.fetch_calls += 1

    async def list_tracked_files(self, pattern: str) -> list[str]:
        return sorted(p for p in self.tracked if fnmatch.fnmatch(p, pattern))

    async def read_file_at_head(self, path: str) -> bytes:
        if path not in self.tracked:
            raise VersionControlError("git show", f"path {path!r} does not exist", 128)
        return self.tracked[path]

    async def push(self) -> None:
        self.push_calls += 1
        if self.fail_push:
            raise VersionControlError("git push", "simulated failure", 1)

    async def pull(self) -> None:
        return None

    async def is_repo(self) -> bool:
        return True


# === FIXTURES ===


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with every path inside tmp_path."""
    data = tmp_path / "data"
    return Settings(
        _env_file=None,
        data_dir=data,
        content_dir=data / "content",
        archive_dir=data / "archive",
        db_path=data / "db" / "docvault-db.json",
        backup_dir=data / "backups",
        git_repo_dir=tmp_path,
        auto_hydrate=False,
        auto_dehydrate=False,
    )


@pytest.fixture
def store(settings: Settings) -> JsonDocumentStore:
    return JsonDocumentStore(settings.db_path)


@pytest.fixture
def content_store(settings: Settings, clock: FakeClock) -> ContentStore:
    return ContentStore(settings.content_dir, settings.archive_dir, clock=clock)


@pytest.fixture
def fake_vcs(tmp_path: Path) -> FakeVersionControl:
    return FakeVersionControl(tmp_path)


@pytest.fixture
def engine(store: JsonDocumentStore, content_store: ContentStore, clock: FakeClock) -> WorkflowEngine:
    return WorkflowEngine(store, content_store, clock=clock)


@pytest.fixture
def circular() -> Document:
    """A PENDING 2026 circular."""
    return new_document(
        Category.CIRCULARS,
        "26EC50",
        metadata={"title": "Circular on virtual asset custody", "year": 2026, "language": "EN"},
        source={"discovery_method": "search_api"},
    )
