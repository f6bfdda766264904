import logging
from typing import Any, List, Optional

from fastapi import HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AdmissionError, ResourceConflictError
from app.models.agent_model import Agent
from app.models.assistant_model import Assistant
from app.models.user_model import Users
from app.modules.agent.service import agent_service
from app.modules.assistant.service import assistant_service
from app.repository.definition_repository import agent_repository, assistant_repository
from app.repository.user_repository import user_repository
from app.schemas.agent_schema import SystemAgentCreate, SystemAgentUpdate
from app.schemas.assistant_schema import SystemAssistantUpdate

logger = logging.getLogger(__name__)


async def get_users_service(db: AsyncSession, skip: int = 0, limit: int = 100) -> List[Users]:
    return await user_repository.get_users(db, skip=skip, limit=limit)


async def get_user_service(db: AsyncSession, user_id: int) -> Users:
    user = await user_repository.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuário não encontrado.")
    return user


def check_plan_gating(definition: Any, changes: dict) -> None:
    """A plan-specific definition must keep at least one allowed plan after the update."""
    plan_specific = changes.get("plan_specific", definition.plan_specific)
    allowed = changes.get("allowed_plan_ids", definition.allowed_plan_ids)
    if plan_specific and not allowed:
        raise AdmissionError(
            "Se a definição for específica por plano, a lista de IDs de planos permitidos não pode ser vazia."
        )


# --- System agents ---

async def list_system_agents_service(db: AsyncSession) -> List[Agent]:
    return await agent_repository.get_system_agents(db)


async def _get_system_agent(db: AsyncSession, agent_id: int) -> Agent:
    agent = await agent_repository.get(db, agent_id)
    if not agent or not agent.is_system_agent:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agente do sistema não encontrado.")
    return agent


async def create_system_agent_service(db: AsyncSession, agent_in: SystemAgentCreate) -> Agent:
    agent = await agent_service.create_system_agent(db, agent_in)
    logger.info(f"System agent {agent.id} '{agent.name}' created")
    return agent


async def update_system_agent_service(db: AsyncSession, agent_id: int, agent_in: SystemAgentUpdate) -> Agent:
    agent = await _get_system_agent(db, agent_id)
    changes = agent_in.model_dump(exclude_unset=True, exclude_none=True)
    check_plan_gating(agent, changes)
    for field, value in changes.items():
        setattr(agent, field, value)
    await db.commit()
    await db.refresh(agent)
    logger.info(f"System agent {agent_id} updated: {sorted(changes)}")
    return agent


async def delete_system_agent_service(db: AsyncSession, agent_id: int) -> None:
    agent = await _get_system_agent(db, agent_id)
    if await agent_repository.has_actions(db, agent_id):
        raise ResourceConflictError("Este agente possui execuções registradas e não pode ser excluído.")
    await db.delete(agent)
    await db.commit()
    logger.info(f"System agent {agent_id} deleted")


# --- System assistants ---

async def list_system_assistants_service(db: AsyncSession) -> List[Assistant]:
    return await assistant_repository.get_system_assistants(db)


async def _get_system_assistant(db: AsyncSession, assistant_id: int) -> Assistant:
    assistant = await assistant_repository.get(db, assistant_id)
    if not assistant or not assistant.is_system_assistant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assistente do sistema não encontrado.")
    return assistant


async def update_system_assistant_service(
    db: AsyncSession,
    admin: Users,
    assistant_id: int,
    assistant_in: SystemAssistantUpdate,
    files: Optional[List[UploadFile]] = None,
) -> Assistant:
    assistant = await _get_system_assistant(db, assistant_id)
    check_plan_gating(assistant, assistant_in.model_dump(exclude_unset=True, exclude_none=True))
    return await assistant_service.update_assistant(db, admin, assistant_id, assistant_in, files)


async def delete_system_assistant_service(db: AsyncSession, admin: Users, assistant_id: int) -> None:
    await _get_system_assistant(db, assistant_id)
    await assistant_service.delete_assistant(db, admin, assistant_id)
