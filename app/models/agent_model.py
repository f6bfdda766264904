import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Text, Boolean, JSON, DateTime, func
from app.models.base import Base


class OutputFormat(str, enum.Enum):
    TEXT = "text"
    PDF = "pdf"


class Agent(Base):
    """Single-shot generation template. `{text}` in the prompt is replaced by the input."""
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    prompt_template = Column(Text, nullable=False)
    output_format = Column(String(10), nullable=False, default=OutputFormat.TEXT.value)
    model_used = Column(String, nullable=False, default="gpt-3.5-turbo")
    is_system_agent = Column(Boolean, nullable=False, default=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    requires_user_openai_token = Column(Boolean, nullable=False, default=False)
    plan_specific = Column(Boolean, nullable=False, default=False)
    allowed_plan_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def is_system_owned(self) -> bool:
        return bool(self.is_system_agent)
