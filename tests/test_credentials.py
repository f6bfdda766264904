import pytest

from app.core.exceptions import CredentialError
from app.models.agent_model import Agent
from app.modules.credentials.service import (
    OWN_KEY_REQUIRED,
    SYSTEM_KEY_FORBIDDEN,
    SYSTEM_KEY_MISSING,
    CredentialTier,
    client_for_job,
    select_credential,
)
from app.utils.encryption import encrypt_string

SYSTEM_KEY = "sk-platform"


def fake_factory(api_key):
    return {"api_key": api_key}


def agent(**fields):
    values = dict(
        id=3,
        name="Ata",
        prompt_template="{text}",
        is_system_agent=True,
        created_by_user_id=None,
        requires_user_openai_token=False,
        plan_specific=False,
        allowed_plan_ids=[],
    )
    values.update(fields)
    return Agent(**values)


def select(user, definition=None, system_api_key=SYSTEM_KEY):
    return select_credential(user, definition, system_api_key=system_api_key, client_factory=fake_factory)


def test_transcription_always_uses_system_key(user_builder):
    user = user_builder(openai_api_key=encrypt_string("sk-own"))

    selection = select(user)

    assert selection.tier == CredentialTier.SYSTEM
    assert selection.used_system_token is True
    assert selection.client == {"api_key": SYSTEM_KEY}


def test_missing_system_key_is_a_credential_error(user_builder):
    with pytest.raises(CredentialError) as exc_info:
        select(user_builder(), system_api_key="")
    assert exc_info.value.detail == SYSTEM_KEY_MISSING


def test_definition_requiring_own_key_without_key(user_builder):
    user = user_builder()

    with pytest.raises(CredentialError) as exc_info:
        select(user, agent(requires_user_openai_token=True))
    assert exc_info.value.detail == OWN_KEY_REQUIRED


def test_definition_requiring_own_key_with_key(user_builder):
    user = user_builder(openai_api_key=encrypt_string("sk-own"))

    selection = select(user, agent(requires_user_openai_token=True))

    assert selection.tier == CredentialTier.OWN
    assert selection.used_system_token is False
    assert selection.client == {"api_key": "sk-own"}


def test_user_owned_definition_uses_own_key(user_builder):
    user = user_builder(openai_api_key=encrypt_string("sk-own"))

    selection = select(user, agent(is_system_agent=False, created_by_user_id=user.id))

    assert selection.tier == CredentialTier.OWN


def test_system_definition_on_system_key(user_builder):
    user = user_builder({"use_system_token_for_system_agents": True})

    selection = select(user, agent())

    assert selection.tier == CredentialTier.SYSTEM


def test_plan_opt_in_prefers_own_key(user_builder):
    user = user_builder(
        {"allow_user_provide_own_agent_token": True, "use_system_token_for_system_agents": True},
        openai_api_key=encrypt_string("sk-own"),
    )

    assert select(user, agent()).tier == CredentialTier.OWN


def test_plan_forbidding_system_key(user_builder):
    user = user_builder({"use_system_token_for_system_agents": False})

    with pytest.raises(CredentialError) as exc_info:
        select(user, agent())
    assert exc_info.value.detail == SYSTEM_KEY_FORBIDDEN


def test_admin_always_on_system_key(user_builder):
    admin = user_builder(role="admin", plan_id=None)

    assert select(admin, agent(requires_user_openai_token=True)).tier == CredentialTier.SYSTEM


def test_unreadable_stored_key_counts_as_missing(user_builder):
    user = user_builder(openai_api_key="not-a-fernet-token")

    with pytest.raises(CredentialError):
        select(user, agent(requires_user_openai_token=True))


def test_client_for_job_rebuilds_recorded_tier(user_builder):
    user = user_builder(openai_api_key=encrypt_string("sk-own"))

    assert client_for_job(user, True, system_api_key=SYSTEM_KEY, client_factory=fake_factory) == {"api_key": SYSTEM_KEY}
    assert client_for_job(user, False, system_api_key=SYSTEM_KEY, client_factory=fake_factory) == {"api_key": "sk-own"}

    user.openai_api_key = None
    with pytest.raises(CredentialError):
        client_for_job(user, False, system_api_key=SYSTEM_KEY, client_factory=fake_factory)
