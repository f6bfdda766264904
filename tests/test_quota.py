import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.modules.entitlements.service import Capability
from app.modules.quota.service import add_months, creation_period_elapsed, quota_service
from app.repository.user_repository import user_repository


async def reload(db_session, user_id):
    return await user_repository.get_user(db_session, user_id)


def test_add_months_clamps_to_month_end():
    assert add_months(datetime(2025, 1, 31), 1) == datetime(2025, 2, 28)
    assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
    assert add_months(datetime(2025, 12, 15, 8, 30), 1) == datetime(2026, 1, 15, 8, 30)
    assert add_months(datetime(2024, 2, 29), 12) == datetime(2025, 2, 28)


def test_creation_period_elapsed():
    now = datetime(2025, 6, 15)
    assert creation_period_elapsed(None, "monthly", now) is True
    assert creation_period_elapsed(datetime(2025, 5, 15), "monthly", now) is True
    assert creation_period_elapsed(datetime(2025, 5, 16), "monthly", now) is False
    assert creation_period_elapsed(datetime(2024, 6, 15), "yearly", now) is True
    assert creation_period_elapsed(datetime(2000, 1, 1), "never", now) is False


@pytest.mark.asyncio
async def test_charge_increments_counter(db_session, create_user):
    user = await create_user(agent_uses_used=4)

    await quota_service.charge(db_session, user.id, Capability.RUN_AGENT)

    assert (await reload(db_session, user.id)).agent_uses_used == 5


@pytest.mark.asyncio
async def test_transcription_charge_adds_minutes(db_session, create_user):
    user = await create_user()

    await quota_service.charge(db_session, user.id, Capability.TRANSCRIBE, minutes=2.5)
    await quota_service.charge(db_session, user.id, Capability.TRANSCRIBE, minutes=1.25)

    stored = await reload(db_session, user.id)
    assert stored.transcriptions_used_count == 2
    assert Decimal(str(stored.transcription_minutes_used)) == Decimal("3.75")


@pytest.mark.asyncio
async def test_concurrent_charges_never_lose_an_increment(engine_db, db_session, create_user):
    user = await create_user(assistant_uses_used=3)
    k = 12
    await db_session.commit()

    async def charge_once():
        async with engine_db.async_session_maker() as session:
            await quota_service.charge(session, user.id, Capability.RUN_ASSISTANT)

    await asyncio.gather(*(charge_once() for _ in range(k)))

    assert (await reload(db_session, user.id)).assistant_uses_used == 3 + k


@pytest.mark.asyncio
async def test_release_creation_never_goes_negative(db_session, create_user):
    user = await create_user(user_agents_created_count=1)

    await quota_service.release_creation(db_session, user.id, Capability.CREATE_AGENT)
    await quota_service.release_creation(db_session, user.id, Capability.CREATE_AGENT)

    assert (await reload(db_session, user.id)).user_agents_created_count == 0


@pytest.mark.asyncio
async def test_roll_over_creation_quota(db_session, create_user):
    now = datetime.utcnow()
    user = await create_user(
        {"allow_user_agent_creation": True, "user_agent_creation_reset_period": "monthly"},
        user_agents_created_count=3,
        last_agent_creation_reset_date=now - timedelta(days=40),
        agent_uses_used=7,
    )

    assert await quota_service.roll_over_creation_quota(db_session, user, Capability.CREATE_AGENT, "monthly", now) is True
    assert user.user_agents_created_count == 0
    assert await quota_service.roll_over_creation_quota(db_session, user, Capability.CREATE_AGENT, "monthly", now) is False

    stored = await reload(db_session, user.id)
    assert stored.user_agents_created_count == 0
    assert stored.last_agent_creation_reset_date == now
    # usage counters belong to the plan period, not the creation period
    assert stored.agent_uses_used == 7


@pytest.mark.asyncio
async def test_reset_if_expired_updates_attached_user(db_session, create_user):
    now = datetime.utcnow()
    user = await create_user(expires_at=now - timedelta(days=1), transcriptions_used_count=9)

    assert await quota_service.reset_if_expired(db_session, user, now) is True
    assert user.plan_id is None
    assert user.transcriptions_used_count == 0
    assert await quota_service.reset_if_expired(db_session, user, now) is False


@pytest.mark.asyncio
async def test_reset_if_expired_leaves_active_plan_alone(db_session, create_user):
    user = await create_user(transcriptions_used_count=2)

    assert await quota_service.reset_if_expired(db_session, user) is False
    assert (await reload(db_session, user.id)).transcriptions_used_count == 2


@pytest.mark.asyncio
async def test_sweep_resets_expired_plan_and_is_idempotent(db_session, create_user):
    now = datetime.utcnow()
    expired = await create_user(
        expires_at=now - timedelta(hours=1),
        transcriptions_used_count=5,
        transcription_minutes_used=Decimal("12.50"),
        agent_uses_used=2,
        assistant_uses_used=3,
        user_agents_created_count=1,
        assistants_created_count=1,
    )
    active = await create_user(agent_uses_used=4, last_agent_creation_reset_date=now, last_assistant_creation_reset_date=now)

    first = await quota_service.sweep(db_session, now)
    second = await quota_service.sweep(db_session, now)

    assert first["expired"] == 1
    assert second == {"expired": 0, "rolled_over": 0}

    stored = await reload(db_session, expired.id)
    assert stored.plan_id is None
    assert stored.plan_expires_at is None
    assert stored.transcriptions_used_count == 0
    assert Decimal(str(stored.transcription_minutes_used)) == Decimal("0")
    assert stored.agent_uses_used == 0
    assert stored.assistant_uses_used == 0
    assert stored.user_agents_created_count == 0
    assert stored.assistants_created_count == 0

    untouched = await reload(db_session, active.id)
    assert untouched.plan_id is not None
    assert untouched.agent_uses_used == 4


@pytest.mark.asyncio
async def test_sweep_rolls_over_due_creation_quotas(db_session, create_user):
    now = datetime.utcnow()
    user = await create_user(
        {"allow_user_assistant_creation": True, "assistant_creation_reset_period": "monthly"},
        assistants_created_count=2,
        last_assistant_creation_reset_date=now - timedelta(days=45),
        last_agent_creation_reset_date=now,
    )

    result = await quota_service.sweep(db_session, now)

    assert result["rolled_over"] == 1
    assert (await reload(db_session, user.id)).assistants_created_count == 0
    assert (await quota_service.sweep(db_session, now))["rolled_over"] == 0
