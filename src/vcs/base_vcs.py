# src/vcs/base_vcs.py - v1
"""Abstract version-control interface used as the durable backing store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class BaseVersionControl(ABC):
    """Unified interface for version-control backends."""

    @abstractmethod
    async def add_and_commit(self, path: Path, message: str) -> None:
        """Stage and commit one file. A no-op commit is not an error."""

    @abstractmethod
    async def get_last_commit_hash(self) -> str:
        """Hash of the commit at the current reference."""

    @abstractmethod
    async def fetch(self) -> None:
        """Update remote-tracking refs."""

    @abstractmethod
    async def list_tracked_files(self, pattern: str) -> list[str]:
        """Tracked paths matching a glob, relative to the working directory."""

    @abstractmethod
    async def read_file_at_head(self, path: str) -> bytes:
        """Blob content of a tracked path at the current reference."""

    @abstractmethod
    async def push(self) -> None:
        """Publish local commits to the remote."""

    @abstractmethod
    async def pull(self) -> None:
        """Integrate remote commits into the working tree."""

    @abstractmethod
    async def is_repo(self) -> bool:
        """Whether the working directory is inside a repository."""
