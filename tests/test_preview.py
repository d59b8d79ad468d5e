"""Tests for the read-only backup preview and system info."""

import json
from unittest.mock import AsyncMock

import pytest

from clinic_backup.backup.errors import FormatError, InputError, StorageError, UnsupportedVersionError
from clinic_backup.backup.info import get_system_info
from clinic_backup.backup.preview import preview_backup


# ------------------------------------------------------------------
# preview_backup
# ------------------------------------------------------------------


class TestPreviewBackup:
    """Summaries without side effects."""

    def test_archive_summary(self, tmp_path, manifest_factory, zip_factory):
        path = zip_factory(
            tmp_path / "backup.zip",
            {
                "backup.json": json.dumps(manifest_factory()),
                "uploads/a.png": b"A",
                "uploads/b.png": b"B",
                "uploads/": b"",
                "clinic-settings.json": b"{}",
            },
        )

        preview = preview_backup(path)

        assert preview.version == "3.0.0"
        assert preview.exported_at == "2024-06-01T10:00:00.000Z"
        assert preview.metadata["note"] == "test"
        assert preview.has_images is True
        assert preview.image_count == 2
        assert preview.has_clinic_settings is True

    def test_image_count_is_raw_entry_count(self, tmp_path, manifest_factory, zip_factory):
        path = zip_factory(
            tmp_path / "backup.zip",
            {
                "backup.json": json.dumps(manifest_factory()),
                "uploads/.hidden": b"H",
                "uploads/../../evil.bin": b"E",
            },
        )
        assert preview_backup(path).image_count == 2

    def test_archive_without_files(self, tmp_path, manifest_factory, zip_factory):
        path = zip_factory(tmp_path / "backup.zip", {"backup.json": json.dumps(manifest_factory())})
        preview = preview_backup(path)
        assert preview.has_images is False
        assert preview.image_count == 0
        assert preview.has_clinic_settings is False

    def test_bare_manifest(self, tmp_path, manifest_factory):
        path = tmp_path / "backup.json"
        path.write_text(json.dumps(manifest_factory("1.0.0")))
        preview = preview_backup(path)
        assert preview.version == "1.0.0"
        assert preview.has_images is False
        assert preview.has_clinic_settings is False

    def test_idempotent_and_read_only(self, tmp_path, manifest_factory, zip_factory):
        path = zip_factory(
            tmp_path / "backup.zip",
            {"backup.json": json.dumps(manifest_factory()), "uploads/a.png": b"A"},
        )
        before = path.read_bytes()

        assert preview_backup(path) == preview_backup(path)
        assert path.read_bytes() == before
        assert sorted(p.name for p in tmp_path.iterdir()) == ["backup.zip"]

    def test_same_gate_as_restore(self, tmp_path, manifest_factory, zip_factory):
        path = zip_factory(tmp_path / "backup.zip", {"backup.json": json.dumps(manifest_factory("4.0.0"))})
        with pytest.raises(UnsupportedVersionError):
            preview_backup(path)

    def test_missing_manifest(self, tmp_path, zip_factory):
        path = zip_factory(tmp_path / "backup.zip", {"uploads/a.png": b"A"})
        with pytest.raises(FormatError, match="missing backup.json"):
            preview_backup(path)

    def test_encrypted_manifest(self, tmp_path, damaged_zip_factory):
        path = damaged_zip_factory(tmp_path / "backup.zip", "backup.json", "encrypted")
        with pytest.raises(FormatError, match="cannot read backup.json"):
            preview_backup(path)

    def test_bad_extension(self, tmp_path):
        path = tmp_path / "backup.txt"
        path.write_text("{}")
        with pytest.raises(InputError):
            preview_backup(path)


# ------------------------------------------------------------------
# get_system_info
# ------------------------------------------------------------------


class TestSystemInfo:
    """Record counts and last backup lookup."""

    async def test_counts_summary_entities(self, adapter_factory):
        adapter = adapter_factory(
            {
                "users": [{"id": "u1"}],
                "patients": [{"id": "p1"}, {"id": "p2"}],
                "patient_images": [{"id": "img1"}],
            }
        )
        info = await get_system_info(adapter)
        assert info.database == {
            "users": 1,
            "patients": 2,
            "appointments": 0,
            "treatments": 0,
            "invoices": 0,
            "patientImages": 1,
        }

    async def test_no_backup_yet(self, memory_adapter):
        info = await get_system_info(memory_adapter)
        assert info.last_backup is None
        assert info.server_time.endswith("Z")

    async def test_last_backup_is_newest_backup_event(self, adapter_factory):
        adapter = adapter_factory(
            {
                "audit_logs": [
                    {"id": "1", "action": "BACKUP", "createdAt": "2024-01-01T00:00:00.000Z"},
                    {"id": "2", "action": "BACKUP", "createdAt": "2024-03-01T00:00:00.000Z"},
                    {"id": "3", "action": "RESTORE", "createdAt": "2024-05-01T00:00:00.000Z"},
                ]
            }
        )
        info = await get_system_info(adapter)
        assert info.last_backup == "2024-03-01T00:00:00.000Z"

    async def test_storage_failure(self):
        adapter = AsyncMock()
        adapter.count = AsyncMock(side_effect=RuntimeError("database is locked"))
        with pytest.raises(StorageError, match="database is locked"):
            await get_system_info(adapter)
