from typing import Optional
from fastapi import APIRouter, UploadFile, File, Depends, status, Form, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_db, get_current_user
from app.models.job_ledger import JobStatus
from app.models.user_model import Users
from app.schemas import job_schema
from app.modules.transcription import service as transcription_service

router = APIRouter(
    prefix="/transcriptions",
    tags=["Transcriptions"],
)


@router.post("/", response_model=job_schema.JobAccepted, status_code=status.HTTP_202_ACCEPTED)
async def upload_audio(
    file: UploadFile = File(...),
    title: Optional[str] = Form(default=None),
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Accepts an audio file and queues it for transcription.
    Poll the returned status_url until the status is completed or failed.
    """
    transcription = await transcription_service.create_transcription_service(
        db=db,
        current_user=current_user,
        file=file,
        title=title,
    )
    return job_schema.JobAccepted(
        id=transcription.id,
        status=transcription.status,
        status_url=f"/api/transcriptions/{transcription.id}",
        message="Áudio recebido. A transcrição está sendo processada.",
    )


@router.get("/", response_model=job_schema.PaginatedTranscriptions)
async def list_transcriptions(
    status_filter: Optional[JobStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    items, total = await transcription_service.list_transcriptions_service(
        db=db,
        current_user=current_user,
        status=status_filter.value if status_filter else None,
        page=page,
        limit=limit,
    )
    return job_schema.PaginatedTranscriptions(items=items, total=total, page=page, limit=limit)


@router.get("/{transcription_id}", response_model=job_schema.Transcription)
async def get_transcription(
    transcription_id: int,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await transcription_service.get_transcription_service(db, current_user, transcription_id)


@router.post("/{transcription_id}/cancel", response_model=job_schema.Transcription)
async def cancel_transcription(
    transcription_id: int,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await transcription_service.cancel_transcription_service(db, current_user, transcription_id)


@router.delete("/{transcription_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transcription(
    transcription_id: int,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Deletes the transcription, its assistant history and cancels anything still running on it."""
    await transcription_service.delete_transcription_service(db, current_user, transcription_id)
