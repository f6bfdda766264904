from sqlalchemy import Column, Integer, String, ForeignKey, Text, Boolean, JSON, DateTime, func
from app.models.base import Base
from app.models.agent_model import OutputFormat


def _default_knowledge_base():
    return {"openai_file_ids": []}


def _default_run_configuration():
    return {"temperature": 1.0, "top_p": 1.0}


class Assistant(Base):
    """Multi-step generation definition mirrored by a remote assistant (thread/run protocol)."""
    __tablename__ = "assistants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    instructions = Column(Text, nullable=False)
    model = Column(String, nullable=False, default="gpt-4o")
    execution_mode = Column(String(20), nullable=False, default="FIXO")
    knowledge_base = Column(JSON, nullable=False, default=_default_knowledge_base)
    run_configuration = Column(JSON, nullable=False, default=_default_run_configuration)

    openai_assistant_id = Column(String, nullable=True, unique=True)
    openai_vector_store_id = Column(String, nullable=True, unique=True)

    output_format = Column(String(10), nullable=False, default=OutputFormat.TEXT.value)
    is_system_assistant = Column(Boolean, nullable=False, default=False)
    plan_specific = Column(Boolean, nullable=False, default=False)
    allowed_plan_ids = Column(JSON, nullable=False, default=list)
    requires_user_openai_token = Column(Boolean, nullable=False, default=False)
    created_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def is_system_owned(self) -> bool:
        return bool(self.is_system_assistant)

    @property
    def file_ids(self) -> list:
        return list((self.knowledge_base or {}).get("openai_file_ids") or [])
