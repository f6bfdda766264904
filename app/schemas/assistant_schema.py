from datetime import datetime
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Literal

from app.schemas.agent_schema import PlanGatingUpdate


class RunConfiguration(BaseModel):
    temperature: float = Field(default=1.0, ge=0, le=2)
    top_p: float = Field(default=1.0, ge=0, le=1)
    max_completion_tokens: Optional[int] = Field(default=None, gt=0)


class AssistantBase(BaseModel):
    name: str
    instructions: str
    model: Optional[str] = None
    execution_mode: Literal["FIXO", "DINAMICO"] = "FIXO"
    output_format: Literal["text", "pdf"] = "text"
    run_configuration: RunConfiguration = Field(default_factory=RunConfiguration)


class AssistantCreate(AssistantBase):
    pass


class SystemAssistantCreate(AssistantBase):
    requires_user_openai_token: bool = False
    plan_specific: bool = False
    allowed_plan_ids: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_allow_list(self):
        if self.plan_specific and not self.allowed_plan_ids:
            raise ValueError("plan_specific assistants need at least one allowed plan id")
        return self


class AssistantUpdate(BaseModel):
    name: Optional[str] = None
    instructions: Optional[str] = None
    model: Optional[str] = None
    execution_mode: Optional[Literal["FIXO", "DINAMICO"]] = None
    output_format: Optional[Literal["text", "pdf"]] = None
    run_configuration: Optional[RunConfiguration] = None
    # file ids to drop from the knowledge base
    remove_file_ids: List[str] = Field(default_factory=list)


class SystemAssistantUpdate(AssistantUpdate, PlanGatingUpdate):
    pass


class Assistant(BaseModel):
    id: int
    name: str
    instructions: str
    model: str
    execution_mode: str
    output_format: str
    knowledge_base: dict = {}
    run_configuration: dict = {}
    openai_assistant_id: Optional[str] = None
    openai_vector_store_id: Optional[str] = None
    is_system_assistant: bool
    plan_specific: bool
    allowed_plan_ids: List[int] = []
    requires_user_openai_token: bool
    created_by_user_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssistantRunRequest(BaseModel):
    transcription_id: int
    output_format: Optional[Literal["text", "pdf"]] = None
    dynamic_prompt: Optional[str] = None
