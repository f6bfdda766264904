from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi import HTTPException

from app.core.exceptions import ResourceConflictError
from app.models.subscription_order_model import SubscriptionOrder
from app.modules.admin.plan_service import plan_service
from app.modules.subscription.service import subscription_service
from app.modules.users.service import get_plan_usage_service
from app.schemas.plan_schema import PlanCreate, PlanFeatures, PlanUpdate


@pytest.mark.asyncio
async def test_activate_plan_starts_fresh_period(db_session, create_user, create_plan):
    user = await create_user(plan=False, transcriptions_used_count=4, agent_uses_used=2)
    plan = await create_plan(max_audio_transcriptions=10)
    now = datetime(2026, 3, 1, 12, 0)

    user = await subscription_service.activate_plan(db_session, user.id, plan.id, now=now)

    assert user.plan_id == plan.id
    assert user.plan_expires_at == now + timedelta(days=30)
    assert user.transcriptions_used_count == 0
    assert user.agent_uses_used == 0
    assert user.last_agent_creation_reset_date == now


@pytest.mark.asyncio
async def test_renewing_same_plan_extends_from_current_expiry(db_session, create_user):
    now = datetime.utcnow()
    current_expiry = now + timedelta(days=10)
    user = await create_user(expires_at=current_expiry, transcriptions_used_count=3)

    user = await subscription_service.activate_plan(db_session, user.id, user.plan_id, now=now)

    assert user.plan_expires_at == current_expiry + timedelta(days=30)
    assert user.transcriptions_used_count == 3


@pytest.mark.asyncio
async def test_switching_plan_resets_usage(db_session, create_user, create_plan):
    now = datetime.utcnow()
    user = await create_user(expires_at=now + timedelta(days=10), transcriptions_used_count=3)
    other = await create_plan(max_audio_transcriptions=50)

    user = await subscription_service.activate_plan(db_session, user.id, other.id, now=now)

    assert user.plan_id == other.id
    assert user.plan_expires_at == now + timedelta(days=30)
    assert user.transcriptions_used_count == 0


@pytest.mark.asyncio
async def test_activation_approves_order(db_session, create_user, create_plan):
    user = await create_user(plan=False)
    plan = await create_plan()
    order = SubscriptionOrder(user_id=user.id, plan_id=plan.id, total_amount=Decimal("49.90"), status="pending")
    db_session.add(order)
    await db_session.commit()

    await subscription_service.activate_plan(db_session, user.id, plan.id, order_id=order.id)
    await db_session.refresh(order)

    assert order.status == "approved"


@pytest.mark.asyncio
async def test_activate_unknown_plan_is_404(db_session, create_user):
    user = await create_user(plan=False)

    with pytest.raises(HTTPException) as exc_info:
        await subscription_service.activate_plan(db_session, user.id, 999)
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_assign_none_removes_plan(db_session, create_user):
    user = await create_user(agent_uses_used=5)

    user = await subscription_service.assign_plan(db_session, user.id, None)

    assert user.plan_id is None
    assert user.plan_expires_at is None
    assert user.agent_uses_used == 0


@pytest.mark.asyncio
async def test_assign_plan_with_custom_duration(db_session, create_user, create_plan):
    user = await create_user(plan=False)
    plan = await create_plan()
    now = datetime(2026, 1, 1)

    user = await subscription_service.assign_plan(db_session, user.id, plan.id, duration_in_days=7, now=now)

    assert user.plan_expires_at == datetime(2026, 1, 8)


# --- Plans ---

@pytest.mark.asyncio
async def test_create_plan_stores_normalized_features(db_session):
    plan = await plan_service.create_plan(
        db_session,
        PlanCreate(name="Pro", price=Decimal("99.90"), duration_in_days=30, features=PlanFeatures(max_agent_uses=-1)),
    )

    assert plan.features["max_agent_uses"] == -1
    assert plan.features["user_agent_creation_reset_period"] == "never"
    assert plan.feature_set.max_agent_uses == -1


@pytest.mark.asyncio
async def test_duplicate_plan_name_conflicts(db_session):
    plan_in = PlanCreate(name="Pro", price=Decimal("10"), duration_in_days=30)
    await plan_service.create_plan(db_session, plan_in)

    with pytest.raises(HTTPException) as exc_info:
        await plan_service.create_plan(db_session, plan_in)
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_update_plan_replaces_features(db_session, create_plan):
    plan = await create_plan(max_assistants=1)

    updated = await plan_service.update_plan(
        db_session, plan.id, PlanUpdate(features=PlanFeatures(max_assistants=3), price=Decimal("59.90"))
    )

    assert updated.feature_set.max_assistants == 3
    assert updated.price == Decimal("59.90")


@pytest.mark.asyncio
async def test_plan_referenced_by_orders_cannot_be_deleted(db_session, create_user, create_plan):
    user = await create_user(plan=False)
    plan = await create_plan()
    db_session.add(SubscriptionOrder(user_id=user.id, plan_id=plan.id, total_amount=Decimal("10")))
    await db_session.commit()

    with pytest.raises(ResourceConflictError):
        await plan_service.delete_plan(db_session, plan.id)


@pytest.mark.asyncio
async def test_deactivate_plan(db_session, create_plan):
    plan = await create_plan()

    plan = await plan_service.deactivate_plan(db_session, plan.id)

    assert plan.is_active is False
    assert [p.id for p in await plan_service.list_plans(db_session, active_only=True)] == []


# --- Usage report ---

@pytest.mark.asyncio
async def test_plan_usage_reports_used_limit_remaining(db_session, create_user):
    user = await create_user(
        {"max_audio_transcriptions": 10, "max_transcription_minutes": 60, "max_agent_uses": -1},
        transcriptions_used_count=4,
        transcription_minutes_used=Decimal("12.5"),
        agent_uses_used=7,
    )

    usage = await get_plan_usage_service(db_session, user)

    assert usage.is_active is True
    assert usage.transcriptions.used == 4
    assert usage.transcriptions.remaining == 6
    assert usage.transcription_minutes.remaining == 47.5
    assert usage.agent_uses.limit == -1
    assert usage.agent_uses.remaining is None


@pytest.mark.asyncio
async def test_plan_usage_without_plan(db_session, create_user):
    user = await create_user(plan=False)

    usage = await get_plan_usage_service(db_session, user)

    assert usage.is_active is False
    assert usage.transcriptions is None
