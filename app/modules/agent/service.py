import logging
import os
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ResourceConflictError, ResourceNotFoundError
from app.models.agent_action_model import AgentAction
from app.models.agent_model import Agent
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
from app.repository.definition_repository import agent_repository
from app.repository.job_ledger_repository import agent_action_repository
from app.schemas.agent_schema import AgentCreate, AgentUpdate, SystemAgentCreate
from app.tasks.job_tasks import run_agent_job

logger = logging.getLogger(__name__)

AGENT_NOT_FOUND = "Agente não encontrado."
ACTION_NOT_FOUND = "Ação de agente não encontrada."


class AgentService:

    async def run_agent(self, db: AsyncSession, user: Users, agent_id: int, transcription_id: int) -> AgentAction:
        agent = await agent_repository.get(db, agent_id)
        if not agent:
            raise ResourceNotFoundError(AGENT_NOT_FOUND)
        transcription = await get_completed_transcription_service(db, user, transcription_id)

        await quota_service.reset_if_expired(db, user)
        require(user, Capability.RUN_AGENT, agent)
        selection = select_credential(user, agent)

        action = await agent_action_repository.create_pending(
            db,
            user_id=user.id,
            agent_id=agent.id,
            transcription_id=transcription.id,
            input_text=transcription.transcription_text,
            output_format=agent.output_format,
            used_system_token=selection.used_system_token,
        )
        await dispatch_job(db, run_agent_job, agent_action_repository, action.id)
        logger.info(f"Agent action {action.id} admitted for user {user.id} (agent {agent.id}, tier {selection.tier.value})")
        return action

    async def list_available_agents(self, db: AsyncSession, user: Users) -> List[Agent]:
        agents = await agent_repository.get_system_agents(db)
        agents += await agent_repository.get_user_agents(db, user.id)
        return filter_visible(user, agents, Capability.RUN_AGENT)

    async def _roll_over(self, db: AsyncSession, user: Users) -> None:
        if has_active_plan(user):
            period = user.current_plan.feature_set.user_agent_creation_reset_period
            await quota_service.roll_over_creation_quota(db, user, Capability.CREATE_AGENT, period)

    async def create_user_agent(self, db: AsyncSession, user: Users, agent_in: AgentCreate) -> Agent:
        await quota_service.reset_if_expired(db, user)
        await self._roll_over(db, user)
        require(user, Capability.CREATE_AGENT)

        agent = Agent(
            **agent_in.model_dump(exclude={"model_used"}),
            model_used=agent_in.model_used or settings.DEFAULT_AGENT_MODEL,
            is_system_agent=False,
            created_by_user_id=user.id,
            requires_user_openai_token=True,
            plan_specific=False,
            allowed_plan_ids=[],
        )
        db.add(agent)
        await quota_service.charge(db, user.id, Capability.CREATE_AGENT, commit=False)
        await db.commit()
        await db.refresh(agent)
        logger.info(f"User {user.id} created agent {agent.id}")
        return agent

    async def create_system_agent(self, db: AsyncSession, agent_in: SystemAgentCreate) -> Agent:
        agent = Agent(
            **agent_in.model_dump(exclude={"model_used"}),
            model_used=agent_in.model_used or settings.DEFAULT_AGENT_MODEL,
            is_system_agent=True,
            created_by_user_id=None,
        )
        db.add(agent)
        await db.commit()
        await db.refresh(agent)
        return agent

    async def update_user_agent(self, db: AsyncSession, user: Users, agent_id: int, agent_in: AgentUpdate) -> Agent:
        agent = await agent_repository.get_owned(db, agent_id, user.id)
        if not agent:
            raise ResourceNotFoundError(AGENT_NOT_FOUND)
        return await agent_repository.update(db, agent, agent_in)

    async def delete_user_agent(self, db: AsyncSession, user: Users, agent_id: int) -> None:
        agent = await agent_repository.get_owned(db, agent_id, user.id)
        if not agent:
            raise ResourceNotFoundError(AGENT_NOT_FOUND)
        if await agent_repository.has_actions(db, agent_id):
            raise ResourceConflictError("Este agente possui execuções registradas e não pode ser excluído.")
        await db.delete(agent)
        await quota_service.release_creation(db, user.id, Capability.CREATE_AGENT, commit=False)
        await db.commit()

    async def list_actions(
        self, db: AsyncSession, user: Users, status: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[AgentAction], int]:
        return await agent_action_repository.list_for_user(db, user.id, status=status, page=page, limit=limit)

    async def get_action(self, db: AsyncSession, user: Users, action_id: int) -> AgentAction:
        action = await agent_action_repository.get_for_user(db, action_id, user.id)
        if not action:
            raise ResourceNotFoundError(ACTION_NOT_FOUND)
        return action

    async def get_action_file(self, db: AsyncSession, user: Users, action_id: int) -> str:
        action = await self.get_action(db, user, action_id)
        if action.status != "completed" or not action.output_file_path or not os.path.exists(action.output_file_path):
            raise ResourceNotFoundError("Arquivo de saída não disponível para esta ação.")
        return action.output_file_path

    async def cancel_action(self, db: AsyncSession, user: Users, action_id: int) -> AgentAction:
        await self.get_action(db, user, action_id)
        if not await agent_action_repository.request_cancel(db, action_id):
            raise ResourceConflictError("Somente execuções pendentes ou em processamento podem ser canceladas.")
        return await agent_action_repository.get(db, action_id)


agent_service = AgentService()
