"""Tests for the deferred-commit certificate buffer."""

from datetime import date
from types import SimpleNamespace
from uuid import uuid4

import pytest

from installer_ops.errors import EntityNotFoundError
from installer_ops.services.certificate_buffer import (
    CertificateEditBuffer,
    CertificateRepository,
    CertificateStatus,
    LocalFileStore,
    StagedKind,
    certificate_status,
)

TODAY = date(2026, 10, 19)
WORKER_ID = uuid4()


class FakeRepository:
    """In-memory certificate store."""

    def __init__(self, certificates=()):
        self.rows = {c.id: c for c in certificates}

    async def get(self, certificate_id):
        return self.rows.get(certificate_id)

    async def add(self, worker_id, payload):
        cert = SimpleNamespace(**{"file_url": None, "notes": None, **payload})
        cert.id = uuid4()
        cert.worker_id = worker_id
        self.rows[cert.id] = cert
        return cert

    async def update(self, certificate, payload):
        for key, value in payload.items():
            setattr(certificate, key, value)
        return certificate

    async def delete(self, certificate):
        del self.rows[certificate.id]

    async def file_in_use(self, file_url):
        return any(cert.file_url == file_url for cert in self.rows.values())


class FakeFileStore:
    def __init__(self, fail=False):
        self.deleted = []
        self.fail = fail

    async def delete(self, file_url):
        if self.fail:
            raise OSError("disk full")
        self.deleted.append(file_url)


def stored_certificate(**overrides):
    values = {
        "id": uuid4(),
        "worker_id": WORKER_ID,
        "name": "Práce ve výškách",
        "issuer": None,
        "type": "plosina",
        "issue_date": date(2025, 1, 10),
        "expiry_date": None,
        "file_url": "/uploads/old.pdf",
        "notes": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestCertificateStatus:
    """Test validity classification."""

    def test_statuses(self):
        assert certificate_status(None, TODAY) == CertificateStatus.NO_LIMIT
        assert certificate_status(date(2026, 10, 18), TODAY) == CertificateStatus.EXPIRED
        assert certificate_status(date(2026, 11, 1), TODAY) == CertificateStatus.EXPIRING_SOON
        assert certificate_status(date(2027, 1, 1), TODAY) == CertificateStatus.VALID

    def test_warning_window_is_configurable(self):
        status = certificate_status(date(2026, 12, 1), TODAY, warning_days=60)

        assert status == CertificateStatus.EXPIRING_SOON


class TestStaging:
    """Test staged operations before commit."""

    def test_operations_are_tagged_in_order(self):
        buffer = CertificateEditBuffer(WORKER_ID)
        existing_id = uuid4()

        temp_id = buffer.stage_add({"name": "BOZP", "issue_date": TODAY, "bogus": 1})
        buffer.stage_edit(existing_id, {"notes": "renewed"})
        buffer.stage_delete(temp_id)

        assert [op.kind for op in buffer.operations] == [
            StagedKind.ADD,
            StagedKind.EDIT,
            StagedKind.DELETE,
        ]
        assert "bogus" not in buffer.operations[0].payload
        assert len(buffer) == 3

    def test_uploaded_file_overrides_payload_url(self):
        buffer = CertificateEditBuffer(WORKER_ID)

        buffer.stage_add({"name": "BOZP", "file_url": "/uploads/x.pdf"}, "/uploads/new.pdf")

        assert buffer.operations[0].payload["file_url"] == "/uploads/new.pdf"
        assert buffer.staged_uploads == ["/uploads/new.pdf"]

    def test_pending_view_applies_staged_changes(self):
        kept = stored_certificate(name="Elektro")
        removed = stored_certificate(name="Svářeč")
        buffer = CertificateEditBuffer(WORKER_ID)
        buffer.stage_edit(kept.id, {"notes": "renewed"})
        buffer.stage_delete(removed.id)
        temp_id = buffer.stage_add({"name": "BOZP", "issue_date": TODAY})

        view = buffer.pending_view([kept, removed])

        assert [row["id"] for row in view] == [kept.id, temp_id]
        assert view[0]["notes"] == "renewed"
        assert view[0]["pending"] is True
        assert view[1]["pending"] is True


class TestCommit:
    """Test applying the buffer and cleaning up orphaned files."""

    async def test_add_edit_delete(self):
        replaced = stored_certificate(file_url="/uploads/old.pdf")
        deleted = stored_certificate(file_url="/uploads/gone.pdf")
        repository = FakeRepository([replaced, deleted])
        files = FakeFileStore()
        buffer = CertificateEditBuffer(WORKER_ID)

        buffer.stage_add({"name": "BOZP", "issue_date": TODAY}, "/uploads/bozp.pdf")
        buffer.stage_edit(replaced.id, {"name": "Plošina"}, "/uploads/new.pdf")
        buffer.stage_delete(deleted.id)

        touched = await buffer.commit(repository, files)

        assert {c.name for c in touched} == {"BOZP", "Plošina"}
        assert deleted.id not in repository.rows
        assert replaced.file_url == "/uploads/new.pdf"
        assert sorted(files.deleted) == ["/uploads/gone.pdf", "/uploads/old.pdf"]
        assert len(buffer) == 0

    async def test_add_then_delete_stores_nothing(self):
        repository = FakeRepository()
        files = FakeFileStore()
        buffer = CertificateEditBuffer(WORKER_ID)

        temp_id = buffer.stage_add({"name": "BOZP"}, "/uploads/tmp.pdf")
        buffer.stage_edit(temp_id, {"notes": "typo"})
        buffer.stage_delete(temp_id)

        touched = await buffer.commit(repository, files)

        assert touched == []
        assert repository.rows == {}
        assert files.deleted == ["/uploads/tmp.pdf"]

    async def test_edit_of_staged_add_targets_new_row(self):
        repository = FakeRepository()
        buffer = CertificateEditBuffer(WORKER_ID)

        temp_id = buffer.stage_add({"name": "BOZP"})
        buffer.stage_edit(temp_id, {"notes": "renewed"})

        touched = await buffer.commit(repository, FakeFileStore())

        assert len(repository.rows) == 1
        assert touched[0].notes == "renewed"

    async def test_unchanged_file_is_kept(self):
        cert = stored_certificate(file_url="/uploads/keep.pdf")
        files = FakeFileStore()
        buffer = CertificateEditBuffer(WORKER_ID)
        buffer.stage_edit(cert.id, {"notes": "only notes"})

        await buffer.commit(FakeRepository([cert]), files)

        assert files.deleted == []

    async def test_missing_certificate_keeps_buffer(self):
        buffer = CertificateEditBuffer(WORKER_ID)
        buffer.stage_delete(uuid4())

        with pytest.raises(EntityNotFoundError):
            await buffer.commit(FakeRepository(), FakeFileStore())

        assert len(buffer) == 1

    async def test_foreign_certificate_is_not_found(self):
        foreign = stored_certificate(worker_id=uuid4(), file_url="/uploads/foreign.pdf")
        repository = FakeRepository([foreign])
        files = FakeFileStore()

        for stage in (
            lambda buffer: buffer.stage_edit(foreign.id, {"name": "Převzato"}),
            lambda buffer: buffer.stage_delete(foreign.id),
        ):
            buffer = CertificateEditBuffer(WORKER_ID)
            buffer.stage_add({"name": "BOZP"})
            stage(buffer)

            with pytest.raises(EntityNotFoundError):
                await buffer.commit(repository, files)

            assert len(buffer) == 2

        assert list(repository.rows.values()) == [foreign]
        assert foreign.name == "Práce ve výškách"
        assert files.deleted == []

    async def test_orphan_still_referenced_is_kept(self):
        shared = "/uploads/shared.pdf"
        other = stored_certificate(worker_id=uuid4(), file_url=shared)
        cert = stored_certificate(file_url="/uploads/mine.pdf")
        files = FakeFileStore()
        buffer = CertificateEditBuffer(WORKER_ID)
        temp_id = buffer.stage_add({"name": "BOZP"}, shared)
        buffer.stage_delete(temp_id)
        buffer.stage_delete(cert.id)

        await buffer.commit(FakeRepository([other, cert]), files)

        assert files.deleted == ["/uploads/mine.pdf"]

    async def test_cleanup_failure_does_not_fail_commit(self, caplog):
        cert = stored_certificate()
        buffer = CertificateEditBuffer(WORKER_ID)
        buffer.stage_delete(cert.id)

        await buffer.commit(FakeRepository([cert]), FakeFileStore(fail=True))

        assert "Failed to delete orphaned certificate file" in caplog.text


class TestDiscard:
    async def test_discard_deletes_only_staged_uploads(self):
        files = FakeFileStore()
        buffer = CertificateEditBuffer(WORKER_ID)
        buffer.stage_add({"name": "BOZP"}, "/uploads/a.pdf")
        buffer.stage_edit(uuid4(), {"name": "Elektro"}, "/uploads/b.pdf")
        buffer.stage_delete(uuid4())

        await buffer.discard(FakeRepository(), files)

        assert files.deleted == ["/uploads/a.pdf", "/uploads/b.pdf"]
        assert len(buffer) == 0

    async def test_discard_keeps_files_of_stored_certificates(self):
        stored = stored_certificate(worker_id=uuid4(), file_url="/uploads/stored.pdf")
        files = FakeFileStore()
        buffer = CertificateEditBuffer(WORKER_ID)
        buffer.stage_add({"name": "BOZP"}, "/uploads/stored.pdf")
        buffer.stage_add({"name": "Elektro"}, "/uploads/fresh.pdf")

        await buffer.discard(FakeRepository([stored]), files)

        assert files.deleted == ["/uploads/fresh.pdf"]
        assert len(buffer) == 0


class TestRepositoryAndFiles:
    """Test the database repository and local file store."""

    async def test_repository_round_trip(self, session, test_worker):
        repository = CertificateRepository(session)

        cert = await repository.add(
            test_worker.id,
            {
                "name": "Elektro §6",
                "type": "elektro",
                "issue_date": TODAY,
                "file_url": "/uploads/elektro.pdf",
            },
        )
        await repository.update(cert, {"notes": "renewed"})

        listed = await repository.list_for_worker(test_worker.id)
        assert [c.id for c in listed] == [cert.id]
        assert listed[0].notes == "renewed"

        assert await repository.file_in_use("/uploads/elektro.pdf") is True

        await repository.delete(cert)
        assert await repository.get(cert.id) is None
        assert await repository.file_in_use("/uploads/elektro.pdf") is False

    async def test_local_file_store(self, tmp_path):
        store = LocalFileStore(tmp_path)

        url = await store.save("../scan.pdf", b"%PDF")

        assert url.startswith("/uploads/")
        assert url.endswith("_scan.pdf")
        stored = tmp_path / url.removeprefix("/uploads/")
        assert stored.read_bytes() == b"%PDF"

        await store.delete(url)
        await store.delete(url)
        await store.delete("https://elsewhere.example/scan.pdf")
        assert not stored.exists()
