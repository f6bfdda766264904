import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from app.core.config import settings
from app.core.exceptions import CredentialError
from app.core.openai_client import OpenAIClient
from app.models.user_model import Users
from app.utils.encryption import decrypt_string

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], Any]

OWN_KEY_REQUIRED = "Este recurso exige que você configure sua própria chave da OpenAI."
SYSTEM_KEY_FORBIDDEN = "Seu plano não permite o uso da chave da plataforma para este recurso."
SYSTEM_KEY_MISSING = "A chave da OpenAI da plataforma não está configurada."


class CredentialTier(str, enum.Enum):
    SYSTEM = "system"
    OWN = "own"


@dataclass
class CredentialSelection:
    client: Any
    tier: CredentialTier

    @property
    def used_system_token(self) -> bool:
        return self.tier == CredentialTier.SYSTEM


def default_client_factory(api_key: str) -> OpenAIClient:
    return OpenAIClient(api_key=api_key)


def _own_key(user: Users) -> Optional[str]:
    return decrypt_string(user.openai_api_key)


def _system_selection(system_api_key: Optional[str], client_factory: ClientFactory) -> CredentialSelection:
    if not system_api_key:
        logger.error("Shared provider key requested but OPENAI_API_KEY is not configured")
        raise CredentialError(SYSTEM_KEY_MISSING)
    return CredentialSelection(client=client_factory(system_api_key), tier=CredentialTier.SYSTEM)


def select_credential(
    user: Users,
    definition: Any = None,
    *,
    system_api_key: Optional[str] = None,
    client_factory: Optional[ClientFactory] = None,
) -> CredentialSelection:
    """
    Picks the credential a job runs on and builds a client for it.
    Without a definition (transcription) the shared key is always used.
    """
    system_api_key = system_api_key if system_api_key is not None else settings.OPENAI_API_KEY
    client_factory = client_factory or default_client_factory

    if user.is_admin or definition is None:
        return _system_selection(system_api_key, client_factory)

    own_key = _own_key(user)

    if definition.requires_user_openai_token or not definition.is_system_owned:
        if not own_key:
            logger.warning(f"User {user.id} has no own provider key for definition {definition.id}")
            raise CredentialError(OWN_KEY_REQUIRED)
        return CredentialSelection(client=client_factory(own_key), tier=CredentialTier.OWN)

    features = user.current_plan.feature_set if user.current_plan else None
    if features is None:
        raise CredentialError(SYSTEM_KEY_FORBIDDEN)

    if features.allow_user_provide_own_agent_token and own_key:
        return CredentialSelection(client=client_factory(own_key), tier=CredentialTier.OWN)

    if features.use_system_token_for_system_agents:
        return _system_selection(system_api_key, client_factory)

    logger.warning(f"User {user.id} plan forbids the shared key for definition {definition.id}")
    raise CredentialError(SYSTEM_KEY_FORBIDDEN)


def client_for_job(
    user: Users,
    used_system_token: bool,
    *,
    system_api_key: Optional[str] = None,
    client_factory: Optional[ClientFactory] = None,
) -> Any:
    """Rebuilds the client inside the worker from the tier recorded at admission."""
    system_api_key = system_api_key if system_api_key is not None else settings.OPENAI_API_KEY
    client_factory = client_factory or default_client_factory
    if used_system_token:
        return _system_selection(system_api_key, client_factory).client
    own_key = _own_key(user)
    if not own_key:
        raise CredentialError(OWN_KEY_REQUIRED)
    return client_factory(own_key)
