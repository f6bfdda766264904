from datetime import datetime
from pydantic import BaseModel
from typing import Optional, List


class JobAccepted(BaseModel):
    """Returned with 202 once a job has a pending ledger row."""
    id: int
    status: str
    status_url: str
    message: str


class Transcription(BaseModel):
    id: int
    title: Optional[str] = None
    original_file_name: Optional[str] = None
    status: str
    duration_seconds: Optional[float] = None
    transcription_text: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AgentAction(BaseModel):
    id: int
    agent_id: int
    transcription_id: Optional[int] = None
    status: str
    output_format: str
    output_text: Optional[str] = None
    output_file_path: Optional[str] = None
    used_system_token: bool
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssistantHistory(BaseModel):
    id: int
    assistant_id: Optional[int] = None
    transcription_id: int
    status: str
    output_format: str
    output_text: Optional[str] = None
    output_file_path: Optional[str] = None
    used_system_token: bool
    openai_run_status: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaginatedTranscriptions(BaseModel):
    items: List[Transcription]
    total: int
    page: int
    limit: int


class PaginatedAgentActions(BaseModel):
    items: List[AgentAction]
    total: int
    page: int
    limit: int


class PaginatedAssistantHistory(BaseModel):
    items: List[AssistantHistory]
    total: int
    page: int
    limit: int
