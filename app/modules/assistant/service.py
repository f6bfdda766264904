import logging
import os
import re
from typing import List, Optional, Tuple, Union

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AdmissionError,
    RemoteProvisioningError,
    ResourceConflictError,
    ResourceNotFoundError,
)
from app.models.assistant_history_model import AssistantHistory
from app.models.assistant_model import Assistant
from app.models.user_model import Users
from app.modules.credentials.service import select_credential
from app.modules.entitlements.service import (
    Capability,
    filter_visible,
    has_active_plan,
    require,
)
from app.modules.quota.service import quota_service
from app.modules.runner.dispatch import dispatch_job
from app.modules.transcription.service import get_completed_transcription_service
from app.repository.definition_repository import assistant_repository
from app.repository.job_ledger_repository import assistant_history_repository
from app.schemas.assistant_schema import (
    AssistantCreate,
    AssistantRunRequest,
    AssistantUpdate,
    SystemAssistantCreate,
    SystemAssistantUpdate,
)
from app.tasks.job_tasks import run_assistant_job
from app.utils.file_manager import delete_local_file, save_uploaded_file

logger = logging.getLogger(__name__)

ASSISTANT_NOT_FOUND = "Assistente não encontrado."
HISTORY_NOT_FOUND = "Histórico de execução não encontrado."


class AssistantService:

    # --- Definition management ---

    async def _get_managed(self, db: AsyncSession, user: Users, assistant_id: int) -> Assistant:
        if user.is_admin:
            assistant = await assistant_repository.get(db, assistant_id)
        else:
            assistant = await assistant_repository.get_owned(db, assistant_id, user.id)
        if not assistant:
            raise ResourceNotFoundError(ASSISTANT_NOT_FOUND)
        return assistant

    async def _upload_knowledge(self, client, files: List[UploadFile], uploaded_ids: List[str]) -> None:
        """Uploads each file to the provider, appending ids as they succeed so a failure can be undone."""
        for upload in files:
            path = await save_uploaded_file(upload, settings.KNOWLEDGE_UPLOAD_DIR)
            try:
                uploaded_ids.append(await client.upload_file(path, filename=upload.filename))
            finally:
                delete_local_file(path)

    async def _undo_remote(
        self,
        client,
        assistant_id: Optional[str] = None,
        vector_store_id: Optional[str] = None,
        file_ids: Optional[List[str]] = None,
    ) -> None:
        """Best-effort removal of provider objects; failures are only logged."""
        if assistant_id:
            try:
                await client.delete_assistant(assistant_id)
            except Exception as e:
                logger.error(f"Could not delete remote assistant {assistant_id}: {e}")
        if vector_store_id:
            try:
                await client.delete_vector_store(vector_store_id)
            except Exception as e:
                logger.error(f"Could not delete vector store {vector_store_id}: {e}")
        for file_id in file_ids or []:
            try:
                await client.delete_file(file_id)
            except Exception as e:
                logger.warning(f"Could not delete remote file {file_id}: {e}")

    async def create_assistant(
        self,
        db: AsyncSession,
        user: Users,
        assistant_in: Union[AssistantCreate, SystemAssistantCreate],
        files: Optional[List[UploadFile]] = None,
    ) -> Assistant:
        """
        Creates the local row, then the remote knowledge base and assistant.
        Any remote failure removes whatever was already created, local row included.
        """
        files = [f for f in (files or []) if f and f.filename]
        is_system = user.is_admin

        if not is_system:
            await quota_service.reset_if_expired(db, user)
            if has_active_plan(user):
                period = user.current_plan.feature_set.assistant_creation_reset_period
                await quota_service.roll_over_creation_quota(db, user, Capability.CREATE_ASSISTANT, period)
            require(user, Capability.CREATE_ASSISTANT)

        data = assistant_in.model_dump(exclude={"model", "run_configuration"})
        assistant = Assistant(
            **data,
            model=assistant_in.model or settings.DEFAULT_ASSISTANT_MODEL,
            run_configuration=assistant_in.run_configuration.model_dump(),
            knowledge_base={"openai_file_ids": []},
            is_system_assistant=is_system,
            created_by_user_id=None if is_system else user.id,
        )
        if not is_system:
            assistant.requires_user_openai_token = True
            assistant.plan_specific = False
            assistant.allowed_plan_ids = []

        client = select_credential(user, assistant).client
        name = assistant_in.name

        db.add(assistant)
        await db.flush()

        file_ids: List[str] = []
        vector_store_id = None
        remote_id = None
        try:
            if files:
                await self._upload_knowledge(client, files, file_ids)
                slug = re.sub(r"\s+", "_", name)
                vector_store_id = await client.create_vector_store(f"VS_{slug}_{assistant.id}")
                await client.create_file_batch(vector_store_id, file_ids)

            remote_id = await client.create_assistant(
                name=name,
                instructions=assistant.instructions,
                model=assistant.model,
                vector_store_id=vector_store_id,
                temperature=assistant.run_configuration.get("temperature"),
                top_p=assistant.run_configuration.get("top_p"),
            )

            assistant.openai_assistant_id = remote_id
            assistant.openai_vector_store_id = vector_store_id
            assistant.knowledge_base = {"openai_file_ids": file_ids}
            if not is_system:
                await quota_service.charge(db, user.id, Capability.CREATE_ASSISTANT, commit=False)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"Creating assistant '{name}' failed, rolling back remote objects: {e}")
            await self._undo_remote(client, remote_id, vector_store_id, file_ids)
            raise RemoteProvisioningError(f"Erro ao criar assistente na OpenAI: {e}") from e

        await db.refresh(assistant)
        logger.info(f"Assistant {assistant.id} created by user {user.id} (remote {remote_id})")
        return assistant

    async def update_assistant(
        self,
        db: AsyncSession,
        user: Users,
        assistant_id: int,
        assistant_in: Union[AssistantUpdate, SystemAssistantUpdate],
        new_files: Optional[List[UploadFile]] = None,
    ) -> Assistant:
        assistant = await self._get_managed(db, user, assistant_id)
        if not assistant.openai_assistant_id:
            raise AdmissionError("Assistente não sincronizado com a OpenAI.")
        new_files = [f for f in (new_files or []) if f and f.filename]
        client = select_credential(user, assistant).client

        changes = assistant_in.model_dump(
            exclude_unset=True, exclude_none=True, exclude={"remove_file_ids", "run_configuration"}
        )
        # only the sampling fields sent by the caller change; the rest keep their stored values
        run_configuration = dict(assistant.run_configuration or {})
        if assistant_in.run_configuration is not None:
            run_configuration.update(assistant_in.run_configuration.model_dump(exclude_unset=True))
        file_ids = assistant.file_ids
        to_remove = [fid for fid in assistant_in.remove_file_ids if fid in file_ids]

        added_ids: List[str] = []
        created_store = None
        vector_store_id = assistant.openai_vector_store_id
        try:
            if new_files:
                await self._upload_knowledge(client, new_files, added_ids)
                if not vector_store_id:
                    created_store = await client.create_vector_store(f"VS_{assistant.id}")
                    vector_store_id = created_store
                await client.create_file_batch(vector_store_id, added_ids)

            await client.update_assistant(
                assistant.openai_assistant_id,
                name=changes.get("name"),
                instructions=changes.get("instructions"),
                model=changes.get("model"),
                temperature=run_configuration.get("temperature"),
                top_p=run_configuration.get("top_p"),
                tools=[{"type": "file_search"}] if created_store else None,
                tool_resources={"file_search": {"vector_store_ids": [created_store]}} if created_store else None,
            )
        except Exception as e:
            logger.error(f"Updating assistant {assistant_id} failed, rolling back new remote objects: {e}")
            await self._undo_remote(client, vector_store_id=created_store, file_ids=added_ids)
            raise RemoteProvisioningError(f"Erro ao atualizar assistente na OpenAI: {e}") from e

        # Removed files are gone from the knowledge base even if the provider delete fails
        await self._undo_remote(client, file_ids=to_remove)

        for field, value in changes.items():
            setattr(assistant, field, value)
        assistant.run_configuration = run_configuration
        assistant.openai_vector_store_id = vector_store_id
        assistant.knowledge_base = {"openai_file_ids": [fid for fid in file_ids if fid not in to_remove] + added_ids}
        await db.commit()
        await db.refresh(assistant)
        return assistant

    async def delete_assistant(self, db: AsyncSession, user: Users, assistant_id: int) -> None:
        assistant = await self._get_managed(db, user, assistant_id)
        if await assistant_repository.has_jobs_in_flight(db, assistant_id):
            raise ResourceConflictError("Existem execuções em andamento para este assistente. Tente novamente mais tarde.")

        client = select_credential(user, assistant).client
        await self._undo_remote(
            client, assistant.openai_assistant_id, assistant.openai_vector_store_id, assistant.file_ids
        )

        owner_id = assistant.created_by_user_id
        user_owned = not assistant.is_system_assistant
        await assistant_repository.detach_history(db, assistant_id)
        await db.delete(assistant)
        if user_owned and owner_id:
            await quota_service.release_creation(db, owner_id, Capability.CREATE_ASSISTANT, commit=False)
        await db.commit()
        logger.info(f"Assistant {assistant_id} deleted by user {user.id}")

    async def list_available_assistants(self, db: AsyncSession, user: Users) -> List[Assistant]:
        assistants = await assistant_repository.get_system_assistants(db)
        assistants += await assistant_repository.get_user_assistants(db, user.id)
        return filter_visible(user, assistants, Capability.RUN_ASSISTANT)

    # --- Execution ---

    async def run_assistant(
        self, db: AsyncSession, user: Users, assistant_id: int, run_in: AssistantRunRequest
    ) -> AssistantHistory:
        assistant = await assistant_repository.get(db, assistant_id)
        if not assistant:
            raise ResourceNotFoundError(ASSISTANT_NOT_FOUND)
        transcription = await get_completed_transcription_service(db, user, run_in.transcription_id)

        await quota_service.reset_if_expired(db, user)
        require(user, Capability.RUN_ASSISTANT, assistant)
        if not assistant.openai_assistant_id:
            raise AdmissionError("Assistente não sincronizado. Edite e salve o assistente para sincronizar com a OpenAI.")
        selection = select_credential(user, assistant)

        history = await assistant_history_repository.create_pending(
            db,
            user_id=user.id,
            assistant_id=assistant.id,
            transcription_id=transcription.id,
            input_text=transcription.transcription_text,
            output_format=run_in.output_format or assistant.output_format,
            dynamic_prompt=run_in.dynamic_prompt,
            used_system_token=selection.used_system_token,
        )
        await dispatch_job(db, run_assistant_job, assistant_history_repository, history.id)
        logger.info(f"Assistant history {history.id} admitted for user {user.id} (assistant {assistant.id}, tier {selection.tier.value})")
        return history

    async def list_history(
        self, db: AsyncSession, user: Users, status: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[AssistantHistory], int]:
        return await assistant_history_repository.list_for_user(db, user.id, status=status, page=page, limit=limit)

    async def get_history(self, db: AsyncSession, user: Users, history_id: int) -> AssistantHistory:
        history = await assistant_history_repository.get_for_user(db, history_id, user.id)
        if not history:
            raise ResourceNotFoundError(HISTORY_NOT_FOUND)
        return history

    async def get_history_file(self, db: AsyncSession, user: Users, history_id: int) -> str:
        history = await self.get_history(db, user, history_id)
        if history.status != "completed" or not history.output_file_path or not os.path.exists(history.output_file_path):
            raise ResourceNotFoundError("Arquivo de saída não disponível para esta execução.")
        return history.output_file_path

    async def cancel_history(self, db: AsyncSession, user: Users, history_id: int) -> AssistantHistory:
        await self.get_history(db, user, history_id)
        if not await assistant_history_repository.request_cancel(db, history_id):
            raise ResourceConflictError("Somente execuções pendentes ou em processamento podem ser canceladas.")
        return await assistant_history_repository.get(db, history_id)


assistant_service = AssistantService()
