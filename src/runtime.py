# src/runtime.py - v1
"""Wire store, content, version control, engine and backup service from settings."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from docvault.backup.service import BackupService
from docvault.config.settings import Settings, load_settings
from docvault.content.content_store import ContentStore
from docvault.logging.logger import setup_logging_from_settings
from docvault.store.json_store import JsonDocumentStore
from docvault.vcs.git_client import GitVersionControl
from docvault.workflow.engine import WorkflowEngine

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Explicitly constructed collaborators; there are no module-level singletons."""

    settings: Settings
    store: JsonDocumentStore
    content: ContentStore
    vcs: GitVersionControl
    engine: WorkflowEngine
    backups: BackupService


def build_runtime(settings: Settings | None = None) -> Runtime:
    settings = settings or load_settings()
    store = JsonDocumentStore(settings.db_path)
    content = ContentStore(settings.content_dir, settings.archive_dir)
    vcs = GitVersionControl(
        repo_dir=settings.git_repo_dir,
        remote=settings.git_remote,
        branch=settings.git_branch,
        read_ref=settings.git_read_ref,
        user_name=settings.git_user_name,
        user_email=settings.git_user_email,
        command_timeout=settings.git_command_timeout_seconds,
        network_timeout=settings.git_network_timeout_seconds,
    )
    engine = WorkflowEngine(store, content)
    backups = BackupService(
        store,
        vcs,
        content,
        settings.backup_dir,
        retention=settings.backup_retention,
        hydrate_mode=settings.hydrate_mode,
        push_enabled=settings.git_push_enabled,
        auto_hydrate=settings.auto_hydrate,
        auto_dehydrate=settings.auto_dehydrate,
    )
    return Runtime(settings, store, content, vcs, engine, backups)


@asynccontextmanager
async def open_runtime(
    settings: Settings | None = None, configure_logging: bool = True
) -> AsyncIterator[Runtime]:
    """Build the runtime, hydrate on enter and dehydrate on exit."""
    runtime = build_runtime(settings)
    if configure_logging:
        setup_logging_from_settings(runtime.settings)
    await runtime.backups.startup()
    try:
        yield runtime
    finally:
        await runtime.backups.shutdown()
