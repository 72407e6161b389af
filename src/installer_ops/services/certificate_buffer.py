"""Deferred-commit buffer for certificate edits made inside the worker form.

Adds, edits and deletes are staged while the form is open and applied only
when the worker itself is saved. Uploaded files that end up unreferenced are
removed after a commit; files uploaded by staged operations are removed on
discard.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Protocol
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from installer_ops.errors import EntityNotFoundError
from installer_ops.models import Certificate

logger = logging.getLogger(__name__)

CERTIFICATE_FIELDS = (
    "name",
    "issuer",
    "type",
    "issue_date",
    "expiry_date",
    "file_url",
    "notes",
)
EXPIRY_WARNING_DAYS = 30


class CertificateStatus(str, Enum):
    NO_LIMIT = "no_limit"
    EXPIRED = "expired"
    EXPIRING_SOON = "expiring_soon"
    VALID = "valid"


def certificate_status(
    expiry_date: date | None,
    today: date | None = None,
    warning_days: int = EXPIRY_WARNING_DAYS,
) -> CertificateStatus:
    """Validity of a certificate on ``today``."""
    if expiry_date is None:
        return CertificateStatus.NO_LIMIT
    today = today or date.today()
    if expiry_date < today:
        return CertificateStatus.EXPIRED
    if expiry_date < today + timedelta(days=warning_days):
        return CertificateStatus.EXPIRING_SOON
    return CertificateStatus.VALID


class StagedKind(str, Enum):
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"


@dataclass(frozen=True)
class StagedOperation:
    """One pending change.

    Adds get a temporary ``certificate_id`` that later edits and deletes in
    the same buffer refer to.
    """

    kind: StagedKind
    certificate_id: UUID
    payload: dict[str, Any] = field(default_factory=dict)
    uploaded_file_url: str | None = None


class FileStore(Protocol):
    async def delete(self, file_url: str) -> None: ...


class CertificateStore(Protocol):
    async def get(self, certificate_id: UUID) -> Any: ...

    async def add(self, worker_id: UUID, payload: dict[str, Any]) -> Any: ...

    async def update(self, certificate: Any, payload: dict[str, Any]) -> Any: ...

    async def delete(self, certificate: Any) -> None: ...

    async def file_in_use(self, file_url: str) -> bool: ...


class CertificateEditBuffer:
    """Staged certificate changes for one worker."""

    def __init__(self, worker_id: UUID):
        self.worker_id = worker_id
        self.operations: list[StagedOperation] = []

    def __len__(self) -> int:
        return len(self.operations)

    @property
    def staged_uploads(self) -> list[str]:
        return [op.uploaded_file_url for op in self.operations if op.uploaded_file_url]

    @staticmethod
    def _clean(payload: dict[str, Any], uploaded_file_url: str | None) -> dict[str, Any]:
        clean = {key: payload[key] for key in CERTIFICATE_FIELDS if key in payload}
        if uploaded_file_url:
            clean["file_url"] = uploaded_file_url
        return clean

    def stage_add(
        self,
        payload: dict[str, Any],
        uploaded_file_url: str | None = None,
        temp_id: UUID | None = None,
    ) -> UUID:
        """Stage a new certificate; returns its temporary id."""
        temp_id = temp_id or uuid4()
        self.operations.append(
            StagedOperation(
                StagedKind.ADD,
                temp_id,
                self._clean(payload, uploaded_file_url),
                uploaded_file_url,
            )
        )
        return temp_id

    def stage_edit(
        self,
        certificate_id: UUID,
        payload: dict[str, Any],
        uploaded_file_url: str | None = None,
    ) -> None:
        self.operations.append(
            StagedOperation(
                StagedKind.EDIT,
                certificate_id,
                self._clean(payload, uploaded_file_url),
                uploaded_file_url,
            )
        )

    def stage_delete(self, certificate_id: UUID) -> None:
        self.operations.append(StagedOperation(StagedKind.DELETE, certificate_id))

    def pending_view(self, existing: Iterable[Any]) -> list[dict[str, Any]]:
        """Certificates as the form shows them: stored rows with staged changes applied."""
        view: dict[UUID, dict[str, Any]] = {}
        for cert in existing:
            row = {key: getattr(cert, key, None) for key in CERTIFICATE_FIELDS}
            row.update(id=cert.id, pending=False)
            view[cert.id] = row
        for op in self.operations:
            if op.kind == StagedKind.ADD:
                row = {key: None for key in CERTIFICATE_FIELDS}
                row.update(op.payload)
                row.update(id=op.certificate_id, pending=True)
                view[op.certificate_id] = row
            elif op.kind == StagedKind.EDIT and op.certificate_id in view:
                view[op.certificate_id].update(op.payload, pending=True)
            elif op.kind == StagedKind.DELETE:
                view.pop(op.certificate_id, None)
        return list(view.values())

    async def commit(self, repository: CertificateStore, file_store: FileStore) -> list[Any]:
        """Apply staged operations in order, then delete files no longer referenced.

        Orphans are files of deleted certificates, files replaced by an edit,
        and uploads of adds deleted before the commit. A file any stored
        certificate still references is never deleted. The buffer is emptied
        only after every operation succeeded.

        Returns the surviving certificates that were added or edited.

        Raises:
            EntityNotFoundError: If an edit or delete targets a certificate
                that is missing or belongs to another worker; nothing is applied
        """
        temp_ids = {op.certificate_id for op in self.operations if op.kind == StagedKind.ADD}
        stored = await self._load_stored(repository, temp_ids)
        real_ids: dict[UUID, UUID] = {}
        touched: dict[UUID, Any] = {}
        files_before: set[str] = set(self.staged_uploads)

        for op in self.operations:
            if op.kind == StagedKind.ADD:
                if any(
                    later.kind == StagedKind.DELETE and later.certificate_id == op.certificate_id
                    for later in self.operations
                ):
                    continue
                cert = await repository.add(self.worker_id, op.payload)
                real_ids[op.certificate_id] = cert.id
                touched[cert.id] = cert
                continue

            if op.certificate_id in temp_ids and op.certificate_id not in real_ids:
                # Staged add that was deleted again; nothing stored
                continue
            cert_id = real_ids.get(op.certificate_id, op.certificate_id)
            cert = touched.get(cert_id) or stored.get(cert_id)
            if cert is None:
                # Deleted earlier in this buffer
                raise EntityNotFoundError("Certificate", cert_id)
            if cert_id not in touched and cert.file_url:
                files_before.add(cert.file_url)

            if op.kind == StagedKind.EDIT:
                touched[cert_id] = await repository.update(cert, op.payload)
            else:
                await repository.delete(cert)
                touched.pop(cert_id, None)
                stored.pop(cert_id, None)

        files_after = {cert.file_url for cert in touched.values() if cert.file_url}
        for file_url in sorted(files_before - files_after):
            await self._delete_unreferenced(repository, file_store, file_url)

        self.operations.clear()
        logger.info(
            "Committed certificate changes for worker %s (%d kept)",
            self.worker_id,
            len(touched),
        )
        return list(touched.values())

    async def discard(self, repository: CertificateStore, file_store: FileStore) -> None:
        """Drop staged operations and delete files only they uploaded.

        Uploads named by the client that a stored certificate references are
        left in place.
        """
        for file_url in self.staged_uploads:
            await self._delete_unreferenced(repository, file_store, file_url)
        self.operations.clear()

    async def _load_stored(
        self,
        repository: CertificateStore,
        temp_ids: set[UUID],
    ) -> dict[UUID, Any]:
        """Stored certificates targeted by staged edits and deletes, all owned by the worker."""
        stored: dict[UUID, Any] = {}
        for op in self.operations:
            cert_id = op.certificate_id
            if op.kind == StagedKind.ADD or cert_id in temp_ids or cert_id in stored:
                continue
            cert = await repository.get(cert_id)
            if cert is None:
                raise EntityNotFoundError("Certificate", cert_id)
            if cert.worker_id != self.worker_id:
                logger.warning(
                    "Refusing %s of certificate %s: owned by worker %s, not %s",
                    op.kind.value,
                    cert_id,
                    cert.worker_id,
                    self.worker_id,
                )
                raise EntityNotFoundError("Certificate", cert_id)
            stored[cert_id] = cert
        return stored

    
    async def _delete_unreferenced(
        cls,
        repository: CertificateStore,
        file_store: FileStore,
        file_url: str,
    ) -> None:
        if await repository.file_in_use(file_url):
            logger.info("Keeping certificate file %s: still referenced", file_url)
            return
        await cls._delete_file(file_store, file_url)

    @staticmethod
    async def _delete_file(file_store: FileStore, file_url: str) -> None:
        try:
            await file_store.delete(file_url)
        except Exception:
            logger.exception("Failed to delete orphaned certificate file %s", file_url)


class CertificateRepository:
    """ORM access to certificates."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_worker(self, worker_id: UUID) -> list[Certificate]:
        result = await self.session.execute(
            select(Certificate)
            .where(Certificate.worker_id == worker_id)
            .order_by(Certificate.issue_date.desc())
        )
        return list(result.scalars().all())

    async def get(self, certificate_id: UUID) -> Certificate | None:
        return await self.session.get(Certificate, certificate_id)

    async def add(self, worker_id: UUID, payload: dict[str, Any]) -> Certificate:
        cert = Certificate(worker_id=worker_id, **payload)
        self.session.add(cert)
        await self.session.flush()
        return cert

    async def update(self, certificate: Certificate, payload: dict[str, Any]) -> Certificate:
        for key, value in payload.items():
            setattr(certificate, key, value)
        await self.session.flush()
        return certificate

    async def delete(self, certificate: Certificate) -> None:
        await self.session.delete(certificate)
        await self.session.flush()

    async def file_in_use(self, file_url: str) -> bool:
        """Whether any certificate, of any worker, references the file."""
        result = await self.session.execute(
            select(Certificate.id).where(Certificate.file_url == file_url).limit(1)
        )
        return result.first() is not None


class LocalFileStore:
    """Uploaded files kept under a local directory and served as ``/uploads/<name>``."""

    URL_PREFIX = "/uploads/"

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path_for(self, file_url: str) -> Path | None:
        if not file_url.startswith(self.URL_PREFIX):
            return None
        name = Path(file_url[len(self.URL_PREFIX):]).name
        return self.root / name

    async def save(self, filename: str, content: bytes) -> str:
        """Store content under a unique name and return its URL."""
        name = f"{uuid4().hex}_{Path(filename).name}"
        path = self.root / name

        def write() -> None:
            self.root.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        await asyncio.to_thread(write)
        return f"{self.URL_PREFIX}{name}"

    async def delete(self, file_url: str) -> None:
        """Remove a stored file; URLs outside the store are ignored."""
        path = self._path_for(file_url)
        if path is None:
            logger.debug("Not deleting %s: outside the local upload store", file_url)
            return
        await asyncio.to_thread(path.unlink, missing_ok=True)
