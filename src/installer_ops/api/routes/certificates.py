"""Worker certificate endpoints.

The worker form keeps certificate changes as staged operations and sends
them here when the worker is saved (commit) or the form is cancelled
(discard).
"""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Request, status

from installer_ops.api.dependencies import CurrentSession, DbSession, FileStore
from installer_ops.api.schemas import (
    CertificateBatch,
    CertificateResponse,
    ErrorResponse,
    UploadResponse,
)
from installer_ops.config import settings
from installer_ops.errors import EntityNotFoundError, PermissionDeniedError
from installer_ops.models import Certificate, Worker
from installer_ops.services.certificate_buffer import (
    CertificateEditBuffer,
    CertificateRepository,
    StagedKind,
    certificate_status,
)
from installer_ops.services.session_context import SessionContext

router = APIRouter(prefix="/workers/{worker_id}/certificates", tags=["certificates"])


def _check_access(session: SessionContext, worker_id: UUID, action: str) -> None:
    if session.is_admin or session.effective_worker_id == worker_id:
        return
    raise PermissionDeniedError(action, session.effective_role.value)


def _to_response(cert: Certificate, today: date) -> CertificateResponse:
    response = CertificateResponse.model_validate(cert)
    response.status = certificate_status(
        cert.expiry_date, today, settings.certificate_expiry_warning_days
    ).value
    return response


def _build_buffer(worker_id: UUID, batch: CertificateBatch) -> CertificateEditBuffer:
    buffer = CertificateEditBuffer(worker_id)
    for op in batch.operations:
        payload = op.payload.model_dump(exclude_unset=True) if op.payload else {}
        kind = StagedKind(op.kind)
        if kind == StagedKind.ADD:
            buffer.stage_add(payload, op.uploaded_file_url, temp_id=op.certificate_id)
            continue
        if op.certificate_id is None:
            raise ValueError(f"'{kind.value}' operation needs a certificate_id")
        if kind == StagedKind.EDIT:
            buffer.stage_edit(op.certificate_id, payload, op.uploaded_file_url)
        else:
            buffer.stage_delete(op.certificate_id)
    return buffer


@router.get("", response_model=list[CertificateResponse])
async def list_certificates(
    db: DbSession,
    session: CurrentSession,
    worker_id: Annotated[UUID, Path()],
) -> list[CertificateResponse]:
    """Certificates of a worker with their validity status."""
    _check_access(session, worker_id, "view certificates")
    certificates = await CertificateRepository(db).list_for_worker(worker_id)
    today = date.today()
    return [_to_response(cert, today) for cert in certificates]


@router.post(
    "/files",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_file(
    request: Request,
    session: CurrentSession,
    file_store: FileStore,
    worker_id: Annotated[UUID, Path()],
    filename: Annotated[str, Query(min_length=1)],
) -> UploadResponse:
    """Store a certificate scan; the URL is referenced by a staged operation."""
    _check_access(session, worker_id, "upload certificate files")
    content = await request.body()
    return UploadResponse(file_url=await file_store.save(filename, content))


@router.post(
    "/commit",
    response_model=list[CertificateResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def commit_certificates(
    db: DbSession,
    session: CurrentSession,
    file_store: FileStore,
    worker_id: Annotated[UUID, Path()],
    batch: CertificateBatch,
) -> list[CertificateResponse]:
    """Apply staged operations and clean up files left unreferenced."""
    _check_access(session, worker_id, "edit certificates")
    if await db.get(Worker, worker_id) is None:
        raise EntityNotFoundError("Worker", worker_id)
    buffer = _build_buffer(worker_id, batch)
    await buffer.commit(CertificateRepository(db), file_store)
    await db.commit()
    today = date.today()
    certificates = await CertificateRepository(db).list_for_worker(worker_id)
    return [_to_response(cert, today) for cert in certificates]


@router.post("/discard", status_code=status.HTTP_204_NO_CONTENT)
async def discard_certificates(
    db: DbSession,
    session: CurrentSession,
    file_store: FileStore,
    worker_id: Annotated[UUID, Path()],
    batch: CertificateBatch,
) -> None:
    """Drop staged operations, deleting files only they uploaded."""
    _check_access(session, worker_id, "edit certificates")
    await _build_buffer(worker_id, batch).discard(CertificateRepository(db), file_store)
