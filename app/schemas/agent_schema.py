from datetime import datetime
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Literal


class AgentBase(BaseModel):
    name: str
    description: Optional[str] = None
    prompt_template: str
    output_format: Literal["text", "pdf"] = "text"
    model_used: Optional[str] = None

    @model_validator(mode="after")
    def validate_template(self):
        if "{text}" not in self.prompt_template:
            raise ValueError("prompt_template must contain the {text} placeholder")
        return self


class AgentCreate(AgentBase):
    pass


class SystemAgentCreate(AgentBase):
    requires_user_openai_token: bool = False
    plan_specific: bool = False
    allowed_plan_ids: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_allow_list(self):
        if self.plan_specific and not self.allowed_plan_ids:
            raise ValueError("plan_specific agents need at least one allowed plan id")
        return self


class AgentUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    prompt_template: Optional[str] = None
    output_format: Optional[Literal["text", "pdf"]] = None
    model_used: Optional[str] = None

    @model_validator(mode="after")
    def validate_template(self):
        if self.prompt_template is not None and "{text}" not in self.prompt_template:
            raise ValueError("prompt_template must contain the {text} placeholder")
        return self


class PlanGatingUpdate(BaseModel):
    """Admin-only fields that decide which plans can see a system definition."""
    requires_user_openai_token: Optional[bool] = None
    plan_specific: Optional[bool] = None
    allowed_plan_ids: Optional[List[int]] = None

    @model_validator(mode="before")
    @classmethod
    def clear_allow_list(cls, data):
        # turning plan_specific off opens the definition to every plan
        if isinstance(data, dict) and data.get("plan_specific") is False:
            data = {**data, "allowed_plan_ids": []}
        return data

    @model_validator(mode="after")
    def validate_allow_list(self):
        if self.plan_specific and not self.allowed_plan_ids:
            raise ValueError("plan_specific definitions need at least one allowed plan id")
        return self


class SystemAgentUpdate(AgentUpdate, PlanGatingUpdate):
    pass


class Agent(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    prompt_template: str
    output_format: str
    model_used: str
    is_system_agent: bool
    created_by_user_id: Optional[int] = None
    requires_user_openai_token: bool
    plan_specific: bool
    allowed_plan_ids: List[int] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AgentRunRequest(BaseModel):
    transcription_id: int
