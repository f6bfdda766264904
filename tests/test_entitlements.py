from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import EntitlementError
from app.models.agent_model import Agent
from app.models.assistant_model import Assistant
from app.modules.entitlements.service import (
    CREATION_NOT_ALLOWED,
    LIMIT_MESSAGES,
    MINUTES_EXHAUSTED,
    NO_ACTIVE_PLAN,
    NOT_VISIBLE,
    Capability,
    filter_visible,
    require,
    resolve,
)


def system_agent(agent_id=5, **fields):
    values = dict(
        id=agent_id,
        name="Resumo",
        prompt_template="Resuma: {text}",
        is_system_agent=True,
        created_by_user_id=None,
        requires_user_openai_token=False,
        plan_specific=False,
        allowed_plan_ids=[],
    )
    values.update(fields)
    return Agent(**values)


@pytest.mark.parametrize("used", [0, 1, 50, 10_000])
def test_unlimited_limit_always_allows(user_builder, used):
    user = user_builder({"max_audio_transcriptions": -1, "max_transcription_minutes": -1}, transcriptions_used_count=used)

    entitlement = resolve(user, Capability.TRANSCRIBE)

    assert entitlement.allowed is True
    assert entitlement.remaining is None


@pytest.mark.parametrize("used,limit", [(1, 1), (2, 1), (5, 5), (0, 0)])
def test_used_at_or_over_limit_is_rejected(user_builder, used, limit):
    user = user_builder({"max_agent_uses": limit}, agent_uses_used=used)

    entitlement = resolve(user, Capability.RUN_AGENT, system_agent())

    assert entitlement.allowed is False
    assert entitlement.reason == LIMIT_MESSAGES[Capability.RUN_AGENT]
    assert entitlement.remaining == 0


def test_remaining_is_reported_below_limit(user_builder):
    user = user_builder({"max_assistant_uses": 10}, assistant_uses_used=3)
    assistant = Assistant(id=1, is_system_assistant=True, plan_specific=False, allowed_plan_ids=[],
                          requires_user_openai_token=False)

    entitlement = resolve(user, Capability.RUN_ASSISTANT, assistant)

    assert entitlement.allowed is True
    assert entitlement.remaining == 7
    assert entitlement.used == 3
    assert entitlement.limit == 10


def test_admin_bypasses_plan(user_builder):
    admin = user_builder(role="admin", plan_id=None)

    assert resolve(admin, Capability.TRANSCRIBE).allowed is True
    assert resolve(admin, Capability.CREATE_ASSISTANT).allowed is True


def test_user_without_plan_is_rejected_for_every_capability(user_builder):
    user = user_builder(plan_id=None)

    for capability in Capability:
        entitlement = resolve(user, capability)
        assert entitlement.allowed is False
        assert entitlement.reason == NO_ACTIVE_PLAN


def test_expired_plan_counts_as_no_plan(user_builder):
    user = user_builder(
        {"max_audio_transcriptions": -1},
        expires_at=datetime.utcnow() - timedelta(minutes=1),
    )

    assert resolve(user, Capability.TRANSCRIBE).reason == NO_ACTIVE_PLAN


def test_transcription_minutes_exhausted(user_builder):
    user = user_builder(
        {"max_audio_transcriptions": -1, "max_transcription_minutes": 10},
        transcription_minutes_used=Decimal("10.00"),
    )

    entitlement = resolve(user, Capability.TRANSCRIBE)

    assert entitlement.allowed is False
    assert entitlement.reason == MINUTES_EXHAUSTED


def test_system_agent_outside_allow_list_is_not_visible(user_builder):
    user = user_builder({"max_agent_uses": -1, "allowed_system_agent_ids": [7]})

    assert resolve(user, Capability.RUN_AGENT, system_agent(5)).reason == NOT_VISIBLE
    assert resolve(user, Capability.RUN_AGENT, system_agent(7)).allowed is True


def test_plan_specific_agent_requires_user_plan_in_allowed_ids(user_builder):
    user = user_builder({"max_agent_uses": -1}, plan_id=1)

    assert resolve(user, Capability.RUN_AGENT, system_agent(plan_specific=True, allowed_plan_ids=[2])).reason == NOT_VISIBLE
    assert resolve(user, Capability.RUN_AGENT, system_agent(plan_specific=True, allowed_plan_ids=[1, 2])).allowed is True


def test_creation_requires_plan_flag(user_builder):
    user = user_builder({"allow_user_agent_creation": False, "max_user_agents": -1})

    entitlement = resolve(user, Capability.CREATE_AGENT)

    assert entitlement.allowed is False
    assert entitlement.reason == CREATION_NOT_ALLOWED


def test_creation_limit(user_builder):
    user = user_builder(
        {"allow_user_assistant_creation": True, "max_assistants": 2},
        assistants_created_count=2,
    )

    assert resolve(user, Capability.CREATE_ASSISTANT).reason == LIMIT_MESSAGES[Capability.CREATE_ASSISTANT]


def test_own_credential_definition_skips_usage_count(user_builder):
    user = user_builder({"max_agent_uses": 0})

    entitlement = resolve(user, Capability.RUN_AGENT, system_agent(requires_user_openai_token=True))

    assert entitlement.allowed is True


def test_user_agent_visible_only_to_its_creator(user_builder):
    user = user_builder({"allow_user_agent_creation": True, "max_agent_uses": -1})
    own = system_agent(20, is_system_agent=False, created_by_user_id=user.id)
    foreign = system_agent(21, is_system_agent=False, created_by_user_id=user.id + 1)

    assert resolve(user, Capability.RUN_AGENT, own).allowed is True
    assert resolve(user, Capability.RUN_AGENT, foreign).reason == NOT_VISIBLE


def test_require_raises_entitlement_error(user_builder):
    user = user_builder({"max_audio_transcriptions": 1, "max_transcription_minutes": -1}, transcriptions_used_count=1)

    with pytest.raises(EntitlementError) as exc_info:
        require(user, Capability.TRANSCRIBE)

    assert exc_info.value.status_code == 403
    assert "atingido" in exc_info.value.detail


def test_resolve_requires_user():
    with pytest.raises(ValueError):
        resolve(None, Capability.TRANSCRIBE)


def test_filter_visible(user_builder):
    user = user_builder({"allowed_system_agent_ids": [1, 2]})
    agents = [system_agent(1), system_agent(2), system_agent(3)]

    assert [a.id for a in filter_visible(user, agents, Capability.RUN_AGENT)] == [1, 2]
    assert filter_visible(user_builder(plan_id=None), agents, Capability.RUN_AGENT) == []
