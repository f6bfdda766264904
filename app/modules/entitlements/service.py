import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional

from app.core.exceptions import EntitlementError
from app.models.user_model import Users
from app.schemas.plan_schema import PlanFeatures, UNLIMITED

logger = logging.getLogger(__name__)


class Capability(str, enum.Enum):
    TRANSCRIBE = "transcribe"
    RUN_AGENT = "run_agent"
    RUN_ASSISTANT = "run_assistant"
    CREATE_AGENT = "create_agent"
    CREATE_ASSISTANT = "create_assistant"


AGENT_FAMILY = (Capability.RUN_AGENT, Capability.CREATE_AGENT)
ASSISTANT_FAMILY = (Capability.RUN_ASSISTANT, Capability.CREATE_ASSISTANT)

# capability -> (usage counter on Users, limit field on PlanFeatures)
COUNTERS = {
    Capability.TRANSCRIBE: ("transcriptions_used_count", "max_audio_transcriptions"),
    Capability.RUN_AGENT: ("agent_uses_used", "max_agent_uses"),
    Capability.RUN_ASSISTANT: ("assistant_uses_used", "max_assistant_uses"),
    Capability.CREATE_AGENT: ("user_agents_created_count", "max_user_agents"),
    Capability.CREATE_ASSISTANT: ("assistants_created_count", "max_assistants"),
}

NO_ACTIVE_PLAN = "Você não possui um plano ativo. Adquira ou renove um plano para continuar."
NOT_VISIBLE = "Este recurso não está disponível para o seu plano."
CREATION_NOT_ALLOWED = "Seu plano não permite a criação deste recurso."
LIMIT_MESSAGES = {
    Capability.TRANSCRIBE: "Limite de transcrições de áudio atingido para o seu plano.",
    Capability.RUN_AGENT: "Limite de uso de agentes atingido para o seu plano.",
    Capability.RUN_ASSISTANT: "Limite de uso de assistentes atingido para o seu plano.",
    Capability.CREATE_AGENT: "Limite de criação de agentes atingido para o seu plano.",
    Capability.CREATE_ASSISTANT: "Limite de criação de assistentes atingido para o seu plano.",
}
MINUTES_EXHAUSTED = "Limite de minutos de transcrição atingido para o seu plano."


@dataclass
class Entitlement:
    allowed: bool
    reason: Optional[str] = None
    # None means unlimited
    remaining: Optional[float] = None
    used: float = 0
    limit: int = UNLIMITED


def has_active_plan(user: Users, now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    return (
        user.plan_id is not None
        and user.current_plan is not None
        and user.plan_expires_at is not None
        and user.plan_expires_at > now
    )


def remaining_for(used: float, limit: int) -> Optional[float]:
    if limit == UNLIMITED:
        return None
    return max(limit - used, 0)


def creation_allowed(features: PlanFeatures, capability: Capability) -> bool:
    if capability in AGENT_FAMILY:
        return features.allow_user_agent_creation
    if capability in ASSISTANT_FAMILY:
        return features.allow_user_assistant_creation
    return False


def _system_allow_list(features: PlanFeatures, capability: Capability) -> List[int]:
    if capability in AGENT_FAMILY:
        return features.allowed_system_agent_ids
    if capability in ASSISTANT_FAMILY:
        return features.allowed_system_assistant_ids
    return []


def is_definition_visible(user: Users, definition: Any, capability: Capability, features: PlanFeatures) -> bool:
    """Visibility rules shared by resolve and the listing endpoints."""
    if not definition.is_system_owned:
        return definition.created_by_user_id == user.id and creation_allowed(features, capability)

    if definition.plan_specific and user.plan_id not in (definition.allowed_plan_ids or []):
        return False

    allow_list = _system_allow_list(features, capability)
    if allow_list and definition.id not in allow_list:
        return False
    return True


def forces_own_credential(definition: Any) -> bool:
    return definition is not None and (
        definition.requires_user_openai_token or not definition.is_system_owned
    )


def resolve(
    user: Users,
    capability: Capability,
    definition: Any = None,
    now: Optional[datetime] = None,
) -> Entitlement:
    """
    Decides whether `user` may use `capability` right now. Pure read; business
    denials come back as allowed=False with a reason instead of raising.
    """
    if user is None:
        raise ValueError("user is required")

    if user.is_admin:
        return Entitlement(allowed=True)

    if not has_active_plan(user, now):
        return Entitlement(allowed=False, reason=NO_ACTIVE_PLAN)

    features = user.current_plan.feature_set

    if definition is not None and not is_definition_visible(user, definition, capability, features):
        return Entitlement(allowed=False, reason=NOT_VISIBLE)

    if capability in (Capability.CREATE_AGENT, Capability.CREATE_ASSISTANT) and not creation_allowed(features, capability):
        return Entitlement(allowed=False, reason=CREATION_NOT_ALLOWED)

    # Runs on the caller's own credential never touch the shared counters
    if capability in (Capability.RUN_AGENT, Capability.RUN_ASSISTANT) and forces_own_credential(definition):
        return Entitlement(allowed=True)

    counter, limit_field = COUNTERS[capability]
    used = getattr(user, counter) or 0
    limit = getattr(features, limit_field)

    if capability == Capability.TRANSCRIBE:
        minutes_limit = features.max_transcription_minutes
        minutes_used = float(user.transcription_minutes_used or 0)
        if minutes_limit != UNLIMITED and minutes_used >= minutes_limit:
            return Entitlement(allowed=False, reason=MINUTES_EXHAUSTED, remaining=0, used=used, limit=limit)

    if limit == UNLIMITED:
        return Entitlement(allowed=True, used=used, limit=limit)
    if used >= limit:
        return Entitlement(allowed=False, reason=LIMIT_MESSAGES[capability], remaining=0, used=used, limit=limit)
    return Entitlement(allowed=True, remaining=remaining_for(used, limit), used=used, limit=limit)


def require(
    user: Users,
    capability: Capability,
    definition: Any = None,
    now: Optional[datetime] = None,
) -> Entitlement:
    entitlement = resolve(user, capability, definition, now)
    if not entitlement.allowed:
        logger.warning(f"Entitlement denied for user {user.id} on {capability.value}: {entitlement.reason}")
        raise EntitlementError(entitlement.reason)
    return entitlement


def filter_visible(user: Users, definitions: List[Any], capability: Capability, now: Optional[datetime] = None) -> List[Any]:
    """Definitions the user could run right now, for the listing endpoints."""
    if user.is_admin:
        return list(definitions)
    if not has_active_plan(user, now):
        return []
    features = user.current_plan.feature_set
    return [d for d in definitions if is_definition_visible(user, d, capability, features)]
