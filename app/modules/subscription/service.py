import logging
from datetime import datetime, timedelta
from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.models import Plan, Users, SubscriptionOrder
from app.modules.quota.service import ZEROED_COUNTERS
from app.repository.user_repository import user_repository

logger = logging.getLogger(__name__)

class SubscriptionService:
    """
    Receives the payment boundary's "plan active until <date>" fact. The
    gateway protocol itself lives outside this service.
    """

    def _restart_usage(self, user: Users, now: datetime) -> None:
        for field, value in ZEROED_COUNTERS.items():
            setattr(user, field, value)
        user.last_agent_creation_reset_date = now
        user.last_assistant_creation_reset_date = now

    async def activate_plan(
        self,
        db: AsyncSession,
        user_id: int,
        plan_id: int,
        order_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Users:
        """
        Activates or renews a plan. Renewing the same active plan extends it
        from its current expiry; switching plans or coming back after expiry
        starts a fresh period with zeroed usage.
        """
        now = now or datetime.utcnow()
        user = await user_repository.get_user(db, user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuário não encontrado.")
        plan = await db.get(Plan, plan_id)
        if not plan:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plano não encontrado.")

        still_active = user.plan_expires_at is not None and user.plan_expires_at > now
        renewing = still_active and user.plan_id == plan.id

        start = user.plan_expires_at if renewing else now
        if not renewing:
            self._restart_usage(user, now)
        user.plan_id = plan.id
        user.current_plan = plan
        user.plan_expires_at = start + timedelta(days=plan.duration_in_days)

        if order_id is not None:
            order = await db.get(SubscriptionOrder, order_id)
            if order and order.user_id == user.id:
                order.status = "approved"

        await db.commit()
        await db.refresh(user)
        logger.info(
            f"Plan {plan.id} {'renewed' if renewing else 'activated'} for user {user.id} until {user.plan_expires_at.isoformat()}"
        )
        return user

    async def assign_plan(
        self,
        db: AsyncSession,
        user_id: int,
        plan_id: Optional[int],
        duration_in_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Users:
        """Admin override: always starts a fresh period. plan_id=None removes the plan."""
        now = now or datetime.utcnow()
        user = await user_repository.get_user(db, user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuário não encontrado.")

        self._restart_usage(user, now)
        if plan_id is None:
            user.plan_id = None
            user.current_plan = None
            user.plan_expires_at = None
        else:
            plan = await db.get(Plan, plan_id)
            if not plan:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plano não encontrado.")
            user.plan_id = plan.id
            user.current_plan = plan
            user.plan_expires_at = now + timedelta(days=duration_in_days or plan.duration_in_days)

        await db.commit()
        await db.refresh(user)
        logger.info(f"Admin assigned plan {plan_id} to user {user.id}")
        return user

subscription_service = SubscriptionService()
