from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.agent_action_model import AgentAction
from app.models.agent_model import Agent
from app.models.assistant_history_model import AssistantHistory
from app.models.assistant_model import Assistant
from app.models.job_ledger import JobStatus
from app.models.plan_model import Plan
from app.models.subscription_order_model import SubscriptionOrder
from app.repository.base_repository import BaseRepository


class AgentRepository(BaseRepository[Agent]):
    def __init__(self):
        super().__init__(Agent)

    async def get_system_agents(self, db: AsyncSession) -> List[Agent]:
        result = await db.execute(select(Agent).filter(Agent.is_system_agent.is_(True)).order_by(Agent.id))
        return result.scalars().all()

    async def get_user_agents(self, db: AsyncSession, user_id: int) -> List[Agent]:
        result = await db.execute(
            select(Agent)
            .filter(Agent.is_system_agent.is_(False), Agent.created_by_user_id == user_id)
            .order_by(Agent.id)
        )
        return result.scalars().all()

    async def get_owned(self, db: AsyncSession, agent_id: int, user_id: int) -> Optional[Agent]:
        result = await db.execute(
            select(Agent).filter(
                Agent.id == agent_id,
                Agent.created_by_user_id == user_id,
                Agent.is_system_agent.is_(False),
            )
        )
        return result.scalar_one_or_none()

    async def has_actions(self, db: AsyncSession, agent_id: int) -> bool:
        result = await db.execute(select(AgentAction.id).filter(AgentAction.agent_id == agent_id).limit(1))
        return result.first() is not None


class AssistantRepository(BaseRepository[Assistant]):
    def __init__(self):
        super().__init__(Assistant)

    async def get_system_assistants(self, db: AsyncSession) -> List[Assistant]:
        result = await db.execute(
            select(Assistant).filter(Assistant.is_system_assistant.is_(True)).order_by(Assistant.id)
        )
        return result.scalars().all()

    async def get_user_assistants(self, db: AsyncSession, user_id: int) -> List[Assistant]:
        result = await db.execute(
            select(Assistant)
            .filter(Assistant.is_system_assistant.is_(False), Assistant.created_by_user_id == user_id)
            .order_by(Assistant.id)
        )
        return result.scalars().all()

    async def get_owned(self, db: AsyncSession, assistant_id: int, user_id: int) -> Optional[Assistant]:
        result = await db.execute(
            select(Assistant).filter(
                Assistant.id == assistant_id,
                Assistant.created_by_user_id == user_id,
                Assistant.is_system_assistant.is_(False),
            )
        )
        return result.scalar_one_or_none()

    async def has_jobs_in_flight(self, db: AsyncSession, assistant_id: int) -> bool:
        result = await db.execute(
            select(AssistantHistory.id)
            .filter(
                AssistantHistory.assistant_id == assistant_id,
                AssistantHistory.status.in_(JobStatus.in_flight()),
            )
            .limit(1)
        )
        return result.first() is not None

    async def detach_history(self, db: AsyncSession, assistant_id: int) -> None:
        await db.execute(
            update(AssistantHistory)
            .where(AssistantHistory.assistant_id == assistant_id)
            .values(assistant_id=None)
            .execution_options(synchronize_session=False)
        )


class PlanRepository(BaseRepository[Plan]):
    def __init__(self):
        super().__init__(Plan)

    async def get_by_name(self, db: AsyncSession, name: str) -> Optional[Plan]:
        result = await db.execute(select(Plan).filter(Plan.name == name))
        return result.scalar_one_or_none()

    async def get_all(self, db: AsyncSession, active_only: bool = False) -> List[Plan]:
        query = select(Plan).order_by(Plan.price)
        if active_only:
            query = query.filter(Plan.is_active.is_(True))
        result = await db.execute(query)
        return result.scalars().all()

    async def is_referenced_by_orders(self, db: AsyncSession, plan_id: int) -> bool:
        result = await db.execute(
            select(SubscriptionOrder.id).filter(SubscriptionOrder.plan_id == plan_id).limit(1)
        )
        return result.first() is not None


agent_repository = AgentRepository()
assistant_repository = AssistantRepository()
plan_repository = PlanRepository()
