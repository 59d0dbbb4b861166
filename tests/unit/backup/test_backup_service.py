# tests/unit/backup/test_backup_service.py - v1
"""Tests for backup/service.py - dehydrate, hydrate, retention, startup/shutdown."""

from __future__ import annotations

import zipfile

import pytest

from docvault.backup.dehydrator import UNCOMMITTED
from docvault.backup.service import BackupService
from docvault.core.errors import ArchiveError, NoBackupFoundError, VersionControlError
from docvault.documents.models import Category, new_document
from docvault.store.json_store import JsonDocumentStore


def _service(settings, store, fake_vcs, content_store, clock, **kwargs) -> BackupService:
    kwargs.setdefault("auto_hydrate", settings.auto_hydrate)
    kwargs.setdefault("auto_dehydrate", settings.auto_dehydrate)
    return BackupService(
        store,
        fake_vcs,
        content_store,
        settings.backup_dir,
        clock=clock,
        **kwargs,
    )


@pytest.fixture
def service(settings, store, fake_vcs, content_store, clock) -> BackupService:
    return _service(settings, store, fake_vcs, content_store, clock)


async def _seed(store, content_store) -> None:
    await store.upsert_document(
        Category.CIRCULARS, "26EC50", new_document(Category.CIRCULARS, "26EC50", metadata={"year": 2026})
    )
    await store.upsert_document(Category.NEWS, "26PR12", new_document(Category.NEWS, "26PR12"))
    await content_store.save_markdown(Category.CIRCULARS, "26EC50", "# circular", year=2026)


class TestDehydrate:
    @pytest.mark.asyncio
    async def test_empty_store(self, service, fake_vcs, store, settings):
        result = await service.dehydrate()
        assert result.total_documents == 0
        assert result.files_archived == 1
        assert result.commit_hash == fake_vcs.commits[-1]
        assert (settings.backup_dir / f"{result.backup_id}.zip").exists()
        last = await store.get_last_backup()
        assert last.backup_id == result.backup_id
        assert last.commit_hash == result.commit_hash

    @pytest.mark.asyncio
    async def test_counts_and_sizes(self, service, store, content_store, settings):
        await _seed(store, content_store)
        result = await service.dehydrate()
        assert result.total_documents == 2
        assert result.files_archived == 2
        assert result.size_bytes == len("# circular")
        zip_path = settings.backup_dir / f"{result.backup_id}.zip"
        assert result.compressed_size_bytes == zip_path.stat().st_size
        with zipfile.ZipFile(zip_path) as zf:
            assert set(zf.namelist()) == {
                "docvault-db.json",
                "content/circulars/markdown/2026/26EC50.md",
            }

    @pytest.mark.asyncio
    async def test_commit_failure_is_uncommitted(self, service, fake_vcs, store):
        fake_vcs.fail_commit = True
        result = await service.dehydrate()
        assert result.commit_hash == UNCOMMITTED
        assert (await store.get_last_backup()).commit_hash == UNCOMMITTED

    @pytest.mark.asyncio
    async def test_push_failure_is_tolerated(self, settings, store, fake_vcs, content_store, clock):
        service = _service(settings, store, fake_vcs, content_store, clock, push_enabled=True)
        fake_vcs.fail_push = True
        result = await service.dehydrate()
        assert fake_vcs.push_calls == 1
        assert result.commit_hash == fake_vcs.commits[-1]

    @pytest.mark.asyncio
    async def test_no_push_by_default(self, service, fake_vcs):
        await service.dehydrate()
        assert fake_vcs.push_calls == 0

    @pytest.mark.asyncio
    async def test_retention(self, settings, store, fake_vcs, content_store, clock):
        service = _service(settings, store, fake_vcs, content_store, clock, retention=3)
        ids = []
        for _ in range(4):
            ids.append((await service.dehydrate()).backup_id)
            clock.advance(seconds=1)
        local = sorted(p.stem for p in settings.backup_dir.glob("backup_*.zip"))
        assert local == sorted(ids)[1:]
        assert len(await store.list_backups()) == 4

    @pytest.mark.asyncio
    async def test_same_clock_ids_stay_ordered(self, service):
        first = await service.dehydrate()
        second = await service.dehydrate()
        assert second.backup_id > first.backup_id


class TestHydrate:
    @pytest.mark.asyncio
    async def test_nothing_to_restore(self, service, fake_vcs):
        result = await service.hydrate()
        assert result.restored_from is None
        assert result.documents_restored == 0
        assert result.collections_restored == []
        assert fake_vcs.fetch_calls == 1

    @pytest.mark.asyncio
    async def test_roundtrip_restores_counts(
        self, settings, store, fake_vcs, content_store, clock, tmp_path
    ):
        await _seed(store, content_store)
        service = _service(settings, store, fake_vcs, content_store, clock)
        before = await store.get_counts_by_category()
        dehydrated = await service.dehydrate()

        # fresh machine: same repository, empty data directory
        settings.db_path.unlink()
        (content_store.content_root / "circulars/markdown/2026/26EC50.md").unlink()
        fresh_store = JsonDocumentStore(settings.db_path)
        fresh = _service(settings, fresh_store, fake_vcs, content_store, clock)

        result = await fresh.hydrate()

        assert result.restored_from.endswith(f"{dehydrated.backup_id}.zip")
        assert await fresh_store.get_counts_by_category() == before
        assert result.documents_restored == 2
        assert sorted(result.collections_restored) == ["circulars", "news"]
        assert result.content_files_restored == 1
        assert settings.db_path.exists()

    @pytest.mark.asyncio
    async def test_latest_by_name(self, service, fake_vcs, clock):
        await service.dehydrate()
        clock.advance(minutes=5)
        latest = await service.dehydrate()
        result = await service.hydrate()
        assert result.restored_from.endswith(f"{latest.backup_id}.zip")

    @pytest.mark.asyncio
    async def test_latest_ignores_unrelated_zip(self, service, fake_vcs):
        created = await service.dehydrate()
        fake_vcs.tracked["docs/old_backup_notes.zip"] = b"not a backup"
        fake_vcs.tracked["data/backups/backup_notes.zip"] = b"not a backup"
        result = await service.hydrate()
        assert result.restored_from == f"data/backups/{created.backup_id}.zip"

    @pytest.mark.asyncio
    async def test_explicit_id(self, service, clock):
        first = await service.dehydrate()
        clock.advance(minutes=5)
        await service.dehydrate()
        result = await service.hydrate(first.backup_id)
        assert result.restored_from.endswith(f"{first.backup_id}.zip")

    @pytest.mark.asyncio
    async def test_explicit_id_falls_back_to_local(self, service, fake_vcs, settings):
        fake_vcs.fail_commit = True
        created = await service.dehydrate()
        result = await service.hydrate(created.backup_id)
        assert result.restored_from == str(settings.backup_dir / f"{created.backup_id}.zip")

    @pytest.mark.asyncio
    async def test_explicit_id_not_found(self, service):
        with pytest.raises(NoBackupFoundError, match="backup_20000101_000000_000000"):
            await service.hydrate("backup_20000101_000000_000000")

    @pytest.mark.asyncio
    async def test_fetch_failure_is_fatal(self, service, fake_vcs):
        fake_vcs.fail_fetch = True
        with pytest.raises(VersionControlError):
            await service.hydrate()

    @pytest.mark.asyncio
    async def test_corrupt_archive(self, service, fake_vcs):
        fake_vcs.tracked["data/backups/backup_20260301_090000_000000.zip"] = b"garbage"
        with pytest.raises(ArchiveError):
            await service.hydrate()

    @pytest.mark.asyncio
    async def test_invalid_snapshot(self, service, fake_vcs, store, tmp_path):
        bad = tmp_path / "bad.zip"
        with zipfile.ZipFile(bad, "w") as zf:
            zf.writestr(store.snapshot_name, b"{not json")
        fake_vcs.tracked["data/backups/backup_20260301_090000_000000.zip"] = bad.read_bytes()
        with pytest.raises(ArchiveError, match="snapshot"):
            await service.hydrate()

    @pytest.mark.asyncio
    async def test_replace_mode_clears_local_content(
        self, settings, store, fake_vcs, content_store, clock
    ):
        await _seed(store, content_store)
        service = _service(settings, store, fake_vcs, content_store, clock, hydrate_mode="replace")
        await service.dehydrate()
        extra = await content_store.save_markdown(Category.NEWS, "LOCAL", "local only", year=2026)

        await service.hydrate()

        assert not (content_store.content_root / extra["markdown_path"]).exists()
        assert (content_store.content_root / "circulars/markdown/2026/26EC50.md").exists()

    @pytest.mark.asyncio
    async def test_merge_mode_keeps_local_content(self, service, store, content_store):
        await _seed(store, content_store)
        await service.dehydrate()
        extra = await content_store.save_markdown(Category.NEWS, "LOCAL", "local only", year=2026)
        result = await service.hydrate()
        assert (content_store.content_root / extra["markdown_path"]).exists()
        assert result.content_files_restored == 2


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_has_local_data(self, service, store, content_store):
        assert await service.has_local_data() is False
        content_store.ensure_directories()
        assert await service.has_local_data() is False
        await content_store.save_markdown(Category.NEWS, "N1", "x")
        assert await service.has_local_data() is True

    @pytest.mark.asyncio
    async def test_has_local_data_from_store(self, service, store):
        await store.upsert_document(Category.NEWS, "N1", new_document(Category.NEWS, "N1"))
        assert await service.has_local_data() is True

    @pytest.mark.asyncio
    async def test_startup_hydrates_when_empty(
        self, settings, store, fake_vcs, content_store, clock
    ):
        await _seed(store, content_store)
        await _service(settings, store, fake_vcs, content_store, clock).dehydrate()
        settings.db_path.unlink()
        (content_store.content_root / "circulars/markdown/2026/26EC50.md").unlink()

        fresh_store = JsonDocumentStore(settings.db_path)
        fresh = _service(settings, fresh_store, fake_vcs, content_store, clock, auto_hydrate=True)
        await fresh.startup()

        assert await fresh_store.get_document_count() == 2

    @pytest.mark.asyncio
    async def test_startup_skips_when_local_data(self, settings, store, fake_vcs, content_store, clock):
        await store.upsert_document(Category.NEWS, "N1", new_document(Category.NEWS, "N1"))
        service = _service(settings, store, fake_vcs, content_store, clock, auto_hydrate=True)
        await service.startup()
        assert fake_vcs.fetch_calls == 0

    @pytest.mark.asyncio
    async def test_startup_failure_does_not_raise(
        self, settings, store, fake_vcs, content_store, clock, caplog
    ):
        fake_vcs.fail_fetch = True
        service = _service(settings, store, fake_vcs, content_store, clock, auto_hydrate=True)
        await service.startup()
        assert "Hydration on startup failed" in caplog.text
        assert settings.backup_dir.is_dir()

    @pytest.mark.asyncio
    async def test_shutdown_dehydrates(self, settings, store, fake_vcs, content_store, clock):
        service = _service(settings, store, fake_vcs, content_store, clock, auto_dehydrate=True)
        await service.shutdown()
        assert len(await store.list_backups()) == 1

    @pytest.mark.asyncio
    async def test_shutdown_disabled(self, service, store):
        await service.shutdown()
        assert await store.list_backups() == []

    @pytest.mark.asyncio
    async def test_status(self, service, store, content_store):
        await _seed(store, content_store)
        await service.dehydrate()
        status = await service.status()
        assert status.has_local_data is True
        assert status.total_documents == 2
        assert status.counts_by_category["circulars"] == 1
        assert status.local_backups == 1
        assert status.last_backup is not None
        assert status.local_data_size_bytes == len("# circular")
