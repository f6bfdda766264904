from typing import List, Optional
from fastapi import APIRouter, Depends, status, Query
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_db, get_current_user
from app.models.job_ledger import JobStatus
from app.models.user_model import Users
from app.schemas import agent_schema, job_schema
from app.modules.agent.service import agent_service

router = APIRouter(
    prefix="/agents",
    tags=["Agents"],
)


@router.get("/", response_model=List[agent_schema.Agent])
async def list_available_agents(
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """System agents visible to the caller's plan plus the caller's own agents."""
    return await agent_service.list_available_agents(db, current_user)


@router.post("/", response_model=agent_schema.Agent, status_code=status.HTTP_201_CREATED)
async def create_agent(
    agent_in: agent_schema.AgentCreate,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await agent_service.create_user_agent(db, current_user, agent_in)


@router.put("/{agent_id}", response_model=agent_schema.Agent)
async def update_agent(
    agent_id: int,
    agent_in: agent_schema.AgentUpdate,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await agent_service.update_user_agent(db, current_user, agent_id, agent_in)


@router.delete("/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_agent(
    agent_id: int,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await agent_service.delete_user_agent(db, current_user, agent_id)


@router.post("/{agent_id}/run", response_model=job_schema.JobAccepted, status_code=status.HTTP_202_ACCEPTED)
async def run_agent(
    agent_id: int,
    run_in: agent_schema.AgentRunRequest,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    action = await agent_service.run_agent(db, current_user, agent_id, run_in.transcription_id)
    return job_schema.JobAccepted(
        id=action.id,
        status=action.status,
        status_url=f"/api/agents/actions/{action.id}",
        message="Agente em execução. Consulte o status para obter o resultado.",
    )


@router.get("/actions", response_model=job_schema.PaginatedAgentActions)
async def list_actions(
    status_filter: Optional[JobStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    items, total = await agent_service.list_actions(
        db, current_user, status=status_filter.value if status_filter else None, page=page, limit=limit
    )
    return job_schema.PaginatedAgentActions(items=items, total=total, page=page, limit=limit)


@router.get("/actions/{action_id}", response_model=job_schema.AgentAction)
async def get_action(
    action_id: int,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await agent_service.get_action(db, current_user, action_id)


@router.post("/actions/{action_id}/cancel", response_model=job_schema.AgentAction)
async def cancel_action(
    action_id: int,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await agent_service.cancel_action(db, current_user, action_id)


@router.get("/actions/{action_id}/download")
async def download_action_output(
    action_id: int,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    path = await agent_service.get_action_file(db, current_user, action_id)
    return FileResponse(path, media_type="application/pdf", filename=f"agent_action_{action_id}.pdf")
