import logging
import os
from decimal import Decimal
from typing import List, Optional, Tuple

from fastapi import UploadFile
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.config import settings
from app.core.exceptions import AdmissionError, ResourceConflictError, ResourceNotFoundError
from app.models.agent_action_model import AgentAction
from app.models.assistant_history_model import AssistantHistory
from app.models.transcription_model import Transcription
from app.models.user_model import Users
from app.modules.credentials.service import select_credential
from app.modules.entitlements.service import Capability, require
from app.modules.quota.service import quota_service
from app.modules.runner.dispatch import dispatch_job
from app.repository.job_ledger_repository import (
    agent_action_repository,
    assistant_history_repository,
    transcription_repository,
)
from app.tasks.job_tasks import run_transcription_job
from app.utils.file_manager import delete_local_file, save_uploaded_file

logger = logging.getLogger(__name__)

ALLOWED_AUDIO_TYPES = {
    "audio/mpeg",
    "audio/mp3",
    "audio/mp4",
    "audio/x-m4a",
    "audio/m4a",
    "audio/wav",
    "audio/x-wav",
    "audio/wave",
    "audio/webm",
    "audio/ogg",
    "audio/flac",
    "audio/x-flac",
    "video/mp4",
    "video/webm",
}

NOT_FOUND = "Transcrição não encontrada."


async def create_transcription_service(
    db: AsyncSession,
    current_user: Users,
    file: UploadFile,
    title: Optional[str] = None,
) -> Transcription:
    """
    Admits one audio upload: checks type and plan, stores the file, creates
    the pending row and enqueues the transcription.
    """
    if file.content_type not in ALLOWED_AUDIO_TYPES:
        raise AdmissionError(f"Tipo de arquivo não suportado: {file.content_type}. Envie um arquivo de áudio.")

    await quota_service.reset_if_expired(db, current_user)
    require(current_user, Capability.TRANSCRIBE)
    selection = select_credential(current_user, None)

    try:
        audio_path = await save_uploaded_file(
            file, settings.UPLOAD_DIR, max_bytes=settings.MAX_AUDIO_MB * 1024 * 1024
        )
    except ValueError as e:
        raise AdmissionError(str(e))

    try:
        size_kb = Decimal(os.path.getsize(audio_path)) / 1024
        transcription = await transcription_repository.create_pending(
            db,
            user_id=current_user.id,
            title=title or file.filename,
            audio_path=audio_path,
            original_file_name=file.filename,
            file_size_kb=size_kb.quantize(Decimal("0.01")),
            used_system_token=selection.used_system_token,
        )
    except Exception:
        delete_local_file(audio_path)
        raise

    await dispatch_job(db, run_transcription_job, transcription_repository, transcription.id, [audio_path])
    logger.info(f"Transcription {transcription.id} admitted for user {current_user.id}")
    return transcription


async def list_transcriptions_service(
    db: AsyncSession,
    current_user: Users,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Transcription], int]:
    return await transcription_repository.list_for_user(db, current_user.id, status=status, page=page, limit=limit)


async def get_transcription_service(db: AsyncSession, current_user: Users, transcription_id: int) -> Transcription:
    transcription = await transcription_repository.get_for_user(db, transcription_id, current_user.id)
    if not transcription:
        raise ResourceNotFoundError(NOT_FOUND)
    return transcription


async def delete_transcription_service(db: AsyncSession, current_user: Users, transcription_id: int) -> None:
    """
    Deletes a transcription with everything that depends on it. In-flight
    dependents are flagged for cancellation first so their runners stop.
    """
    transcription = await get_transcription_service(db, current_user, transcription_id)
    audio_path = transcription.audio_path

    flagged_actions = await agent_action_repository.request_cancel_for(
        db, AgentAction.transcription_id == transcription_id, commit=False
    )
    flagged_history = await assistant_history_repository.request_cancel_for(
        db, AssistantHistory.transcription_id == transcription_id, commit=False
    )

    history_files = (
        await db.execute(
            select(AssistantHistory.output_file_path).where(
                AssistantHistory.transcription_id == transcription_id,
                AssistantHistory.output_file_path.is_not(None),
            )
        )
    ).scalars().all()

    await db.execute(
        delete(AssistantHistory)
        .where(AssistantHistory.transcription_id == transcription_id)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(AgentAction)
        .where(AgentAction.transcription_id == transcription_id)
        .values(transcription_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(transcription)
    await db.commit()

    for path in [audio_path, *history_files]:
        delete_local_file(path)

    logger.info(
        f"Transcription {transcription_id} deleted by user {current_user.id} "
        f"({flagged_actions} agent action(s) and {flagged_history} assistant run(s) cancelled)"
    )


async def cancel_transcription_service(db: AsyncSession, current_user: Users, transcription_id: int) -> Transcription:
    await get_transcription_service(db, current_user, transcription_id)
    if not await transcription_repository.request_cancel(db, transcription_id):
        raise ResourceConflictError("Somente transcrições pendentes ou em processamento podem ser canceladas.")
    return await transcription_repository.get(db, transcription_id)


async def get_completed_transcription_service(db: AsyncSession, current_user: Users, transcription_id: int) -> Transcription:
    """Input lookup for agent and assistant runs."""
    transcription = await get_transcription_service(db, current_user, transcription_id)
    if transcription.status != "completed" or not transcription.transcription_text:
        raise AdmissionError("A transcrição ainda não foi concluída ou não possui texto.")
    return transcription
