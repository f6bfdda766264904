import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import CredentialError
from app.models.user_model import Users
from app.modules.entitlements.service import Capability, COUNTERS, has_active_plan, remaining_for
from app.modules.quota.service import quota_service
from app.schemas.user_schema import PlanUsage, UsageCounter
from app.utils.encryption import encrypt_string

logger = logging.getLogger(__name__)


def _counter(user: Users, counter_field: str, limit: int) -> UsageCounter:
    used = float(getattr(user, counter_field) or 0)
    return UsageCounter(used=used, limit=limit, remaining=remaining_for(used, limit))


async def get_plan_usage_service(db: AsyncSession, user: Users, now: Optional[datetime] = None) -> PlanUsage:
    """Usage so far against the limits of the caller's current plan."""
    now = now or datetime.utcnow()
    await quota_service.reset_if_expired(db, user, now)

    if not has_active_plan(user, now):
        return PlanUsage(
            plan_id=user.plan_id,
            plan_expires_at=user.plan_expires_at,
            is_active=False,
        )

    features = user.current_plan.feature_set
    counters = {}
    for name, capability in (
        ("transcriptions", Capability.TRANSCRIBE),
        ("agent_uses", Capability.RUN_AGENT),
        ("assistant_uses", Capability.RUN_ASSISTANT),
        ("user_agents_created", Capability.CREATE_AGENT),
        ("assistants_created", Capability.CREATE_ASSISTANT),
    ):
        counter_field, limit_field = COUNTERS[capability]
        counters[name] = _counter(user, counter_field, getattr(features, limit_field))

    return PlanUsage(
        plan_id=user.plan_id,
        plan_name=user.current_plan.name,
        plan_expires_at=user.plan_expires_at,
        is_active=True,
        transcription_minutes=_counter(
            user, "transcription_minutes_used", features.max_transcription_minutes
        ),
        **counters,
    )


async def set_openai_key_service(db: AsyncSession, user: Users, api_key: Optional[str]) -> None:
    api_key = (api_key or "").strip()
    if not api_key:
        raise CredentialError("Informe uma chave de API da OpenAI válida.")
    user.openai_api_key = encrypt_string(api_key)
    await db.commit()
    logger.info(f"User {user.id} stored an own OpenAI key")


async def remove_openai_key_service(db: AsyncSession, user: Users) -> None:
    user.openai_api_key = None
    await db.commit()
    logger.info(f"User {user.id} removed the own OpenAI key")
