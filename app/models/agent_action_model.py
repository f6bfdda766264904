from sqlalchemy import Column, Integer, String, ForeignKey, Text
from app.models.base import Base
from app.models.job_ledger import JobLedgerMixin


class AgentAction(JobLedgerMixin, Base):
    __tablename__ = "agent_actions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    agent_id = Column(Integer, ForeignKey("agents.id", ondelete="RESTRICT"), nullable=False, index=True)
    transcription_id = Column(Integer, ForeignKey("transcriptions.id", ondelete="SET NULL"), nullable=True)
    input_text = Column(Text, nullable=False)
    output_text = Column(Text, nullable=True)
    output_format = Column(String(10), nullable=False, default="text")
    output_file_path = Column(String, nullable=True)

    output_field = "output_text"
