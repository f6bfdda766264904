from datetime import datetime
from pydantic import BaseModel
from typing import Optional


class User(BaseModel):
    id: int
    name: str
    email: str
    role: str
    plan_id: Optional[int] = None
    plan_expires_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserPlanAssign(BaseModel):
    # None removes the plan binding
    plan_id: Optional[int] = None
    duration_in_days: Optional[int] = None


class OpenAIKeyUpdate(BaseModel):
    api_key: Optional[str] = None


class UsageCounter(BaseModel):
    used: float
    limit: int
    # None when the limit is unlimited
    remaining: Optional[float] = None


class PlanUsage(BaseModel):
    plan_id: Optional[int] = None
    plan_name: Optional[str] = None
    plan_expires_at: Optional[datetime] = None
    is_active: bool
    transcriptions: Optional[UsageCounter] = None
    transcription_minutes: Optional[UsageCounter] = None
    agent_uses: Optional[UsageCounter] = None
    assistant_uses: Optional[UsageCounter] = None
    user_agents_created: Optional[UsageCounter] = None
    assistants_created: Optional[UsageCounter] = None
