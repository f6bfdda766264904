# app/schemas/plan_schema.py
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Literal

ResetPeriod = Literal["monthly", "yearly", "never"]

UNLIMITED = -1


class PlanFeatures(BaseModel):
    """Entitlements granted by a plan. -1 in any max_* field means unlimited."""
    max_audio_transcriptions: int = 0
    max_transcription_minutes: int = 0

    allow_user_agent_creation: bool = False
    max_user_agents: int = 0
    user_agent_creation_reset_period: ResetPeriod = "never"
    max_agent_uses: int = 0
    allowed_system_agent_ids: List[int] = Field(default_factory=list)

    allow_user_assistant_creation: bool = False
    max_assistants: int = 0
    assistant_creation_reset_period: ResetPeriod = "never"
    max_assistant_uses: int = 0
    allowed_system_assistant_ids: List[int] = Field(default_factory=list)

    use_system_token_for_system_agents: bool = True
    allow_user_provide_own_agent_token: bool = False

    @field_validator(
        "max_audio_transcriptions",
        "max_transcription_minutes",
        "max_user_agents",
        "max_agent_uses",
        "max_assistants",
        "max_assistant_uses",
    )
    @classmethod
    def validate_limit(cls, value: int) -> int:
        if value < UNLIMITED:
            raise ValueError("limits must be -1 (unlimited) or a non-negative integer")
        return value


class PlanBase(BaseModel):
    name: str
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    duration_in_days: int = Field(gt=0)
    features: PlanFeatures = Field(default_factory=PlanFeatures)
    is_active: bool = True

class PlanCreate(PlanBase):
    pass

class PlanUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    duration_in_days: Optional[int] = Field(default=None, gt=0)
    features: Optional[PlanFeatures] = None
    is_active: Optional[bool] = None

class Plan(PlanBase):
    id: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
