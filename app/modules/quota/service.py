import calendar
import logging
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import update, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.attributes import set_committed_value

from app.models.user_model import Users
from app.modules.entitlements.service import Capability, COUNTERS

logger = logging.getLogger(__name__)

# creation capability -> (counter, last reset column, reset period field on PlanFeatures)
CREATION_COUNTERS = {
    Capability.CREATE_AGENT: (
        "user_agents_created_count",
        "last_agent_creation_reset_date",
        "user_agent_creation_reset_period",
    ),
    Capability.CREATE_ASSISTANT: (
        "assistants_created_count",
        "last_assistant_creation_reset_date",
        "assistant_creation_reset_period",
    ),
}

ZEROED_COUNTERS = {
    "transcriptions_used_count": 0,
    "transcription_minutes_used": 0,
    "agent_uses_used": 0,
    "assistant_uses_used": 0,
    "user_agents_created_count": 0,
    "assistants_created_count": 0,
}


def add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def creation_period_elapsed(last_reset: Optional[datetime], period: str, now: datetime) -> bool:
    if period == "never":
        return False
    if last_reset is None:
        return True
    months = 1 if period == "monthly" else 12
    return now >= add_months(last_reset, months)


class QuotaService:
    """
    Every counter write goes through here as a single UPDATE computed by the
    database (col = col + n), never as read-modify-write in Python.
    """

    async def charge(
        self,
        db: AsyncSession,
        user_id: int,
        capability: Capability,
        minutes: float = 0,
        commit: bool = True,
    ) -> None:
        counter, _ = COUNTERS[capability]
        values = {counter: getattr(Users, counter) + 1}
        if capability == Capability.TRANSCRIBE and minutes:
            values["transcription_minutes_used"] = Users.transcription_minutes_used + minutes
        await db.execute(
            update(Users)
            .where(Users.id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if commit:
            await db.commit()
        logger.info(f"Charged {capability.value} for user {user_id} (minutes={minutes})")

    async def release_creation(
        self,
        db: AsyncSession,
        user_id: int,
        capability: Capability,
        commit: bool = True,
    ) -> None:
        """Gives a creation slot back, never going below zero."""
        counter, _, _ = CREATION_COUNTERS[capability]
        column = getattr(Users, counter)
        await db.execute(
            update(Users)
            .where(Users.id == user_id, column > 0)
            .values({counter: column - 1})
            .execution_options(synchronize_session=False)
        )
        if commit:
            await db.commit()

    async def roll_over_creation_quota(
        self,
        db: AsyncSession,
        user: Users,
        capability: Capability,
        period: str,
        now: Optional[datetime] = None,
        commit: bool = True,
    ) -> bool:
        """
        Zeroes one creation counter when its reset period has elapsed since the
        stored reset date. Independent from plan expiry.
        """
        now = now or datetime.utcnow()
        counter, reset_field, _ = CREATION_COUNTERS[capability]
        last_reset = getattr(user, reset_field)
        if not creation_period_elapsed(last_reset, period, now):
            return False

        reset_column = getattr(Users, reset_field)
        guard = reset_column.is_(None) if last_reset is None else reset_column == last_reset
        result = await db.execute(
            update(Users)
            .where(Users.id == user.id, guard)
            .values({counter: 0, reset_field: now})
            .execution_options(synchronize_session=False)
        )
        if commit:
            await db.commit()
        if result.rowcount:
            set_committed_value(user, counter, 0)
            set_committed_value(user, reset_field, now)
            logger.info(f"Rolled over {capability.value} quota for user {user.id} ({period})")
        return bool(result.rowcount)

    async def reset_if_expired(
        self,
        db: AsyncSession,
        user: Users,
        now: Optional[datetime] = None,
        commit: bool = True,
    ) -> bool:
        """Zeroes every counter and drops the plan binding once the plan has expired."""
        now = now or datetime.utcnow()
        if user.plan_expires_at is None or user.plan_expires_at > now:
            return False
        result = await db.execute(
            update(Users)
            .where(Users.id == user.id, Users.plan_expires_at <= now)
            .values(plan_id=None, plan_expires_at=None, **ZEROED_COUNTERS)
            .execution_options(synchronize_session=False)
        )
        if commit:
            await db.commit()
        if result.rowcount:
            for field, value in ZEROED_COUNTERS.items():
                set_committed_value(user, field, value)
            set_committed_value(user, "plan_id", None)
            set_committed_value(user, "plan_expires_at", None)
            set_committed_value(user, "current_plan", None)
            logger.info(f"Plan expired for user {user.id}; usage reset")
        return bool(result.rowcount)

    async def expire_plans(self, db: AsyncSession, now: Optional[datetime] = None, commit: bool = True) -> int:
        now = now or datetime.utcnow()
        result = await db.execute(
            update(Users)
            .where(Users.plan_expires_at.is_not(None), Users.plan_expires_at <= now)
            .values(plan_id=None, plan_expires_at=None, **ZEROED_COUNTERS)
            .execution_options(synchronize_session=False)
        )
        if commit:
            await db.commit()
        return result.rowcount

    async def roll_over_creation_quotas(self, db: AsyncSession, now: Optional[datetime] = None, commit: bool = True) -> int:
        now = now or datetime.utcnow()
        result = await db.execute(
            select(Users)
            .options(joinedload(Users.current_plan))
            .where(
                Users.plan_id.is_not(None),
                Users.plan_expires_at > now,
                or_(Users.user_agents_created_count > 0, Users.assistants_created_count > 0,
                    Users.last_agent_creation_reset_date.is_(None),
                    Users.last_assistant_creation_reset_date.is_(None)),
            )
            .execution_options(populate_existing=True)
        )
        rolled = 0
        for user in result.scalars().unique().all():
            features = user.current_plan.feature_set
            for capability, (_, _, period_field) in CREATION_COUNTERS.items():
                period = getattr(features, period_field)
                if await self.roll_over_creation_quota(db, user, capability, period, now, commit=False):
                    rolled += 1
        if commit:
            await db.commit()
        return rolled

    async def sweep(self, db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, int]:
        """Daily maintenance. Running it twice with the same `now` changes nothing the second time."""
        now = now or datetime.utcnow()
        expired = await self.expire_plans(db, now, commit=False)
        rolled = await self.roll_over_creation_quotas(db, now, commit=False)
        await db.commit()
        logger.info(f"Quota sweep at {now.isoformat()}: {expired} plan(s) expired, {rolled} creation quota(s) rolled over")
        return {"expired": expired, "rolled_over": rolled}


quota_service = QuotaService()
