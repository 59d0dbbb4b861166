# tests/unit/runtime/test_runtime.py - v1
"""Tests for runtime.py - wiring from settings."""

from __future__ import annotations

import pytest

from docvault.backup.service import BackupService
from docvault.runtime import build_runtime, open_runtime
from docvault.store.json_store import JsonDocumentStore
from docvault.vcs.git_client import GitVersionControl
from docvault.workflow.engine import WorkflowEngine


class TestBuildRuntime:
    def test_components(self, settings):
        runtime = build_runtime(settings)
        assert isinstance(runtime.store, JsonDocumentStore)
        assert isinstance(runtime.vcs, GitVersionControl)
        assert isinstance(runtime.engine, WorkflowEngine)
        assert isinstance(runtime.backups, BackupService)
        assert runtime.store.path == settings.db_path
        assert runtime.content.content_root == settings.content_dir
        assert runtime.backups.backup_dir == settings.backup_dir

    def test_independent_instances(self, settings):
        assert build_runtime(settings).store is not build_runtime(settings).store


class TestOpenRuntime:
    @pytest.mark.asyncio
    async def test_startup_prepares_directories(self, settings):
        async with open_runtime(settings, configure_logging=False) as runtime:
            assert settings.backup_dir.is_dir()
            assert (settings.content_dir / "circulars" / "markdown").is_dir()
            assert runtime.settings is settings
        assert list(settings.backup_dir.iterdir()) == []
