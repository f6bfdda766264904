from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Numeric,
    func,
)
from sqlalchemy.orm import relationship
from app.models.base import Base


class Users(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, default="user")

    # Fernet-encrypted provider key supplied by the user (see app.utils.encryption)
    openai_api_key = Column(String(512), nullable=True)

    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="SET NULL"), nullable=True)
    plan_expires_at = Column(DateTime, nullable=True, index=True)

    # Usage counters. Only meaningful while plan_expires_at is in the future.
    transcriptions_used_count = Column(Integer, nullable=False, default=0)
    transcription_minutes_used = Column(Numeric(10, 2), nullable=False, default=0)
    agent_uses_used = Column(Integer, nullable=False, default=0)
    assistant_uses_used = Column(Integer, nullable=False, default=0)

    # Creation counters, rolled over on the plan's reset period
    user_agents_created_count = Column(Integer, nullable=False, default=0)
    last_agent_creation_reset_date = Column(DateTime, nullable=True)
    assistants_created_count = Column(Integer, nullable=False, default=0)
    last_assistant_creation_reset_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    current_plan = relationship("Plan", lazy="joined")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
