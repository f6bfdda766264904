from sqlalchemy import Column, Integer, String, ForeignKey, Text
from app.models.base import Base
from app.models.job_ledger import JobLedgerMixin


class AssistantHistory(JobLedgerMixin, Base):
    __tablename__ = "assistant_histories"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    assistant_id = Column(Integer, ForeignKey("assistants.id", ondelete="SET NULL"), nullable=True, index=True)
    transcription_id = Column(Integer, ForeignKey("transcriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    input_text = Column(Text, nullable=False)
    output_text = Column(Text, nullable=True)
    output_format = Column(String(10), nullable=False, default="text")
    output_file_path = Column(String, nullable=True)

    # Provider-side correlation ids, written only while processing
    openai_thread_id = Column(String, nullable=True)
    openai_run_id = Column(String, nullable=True)
    openai_run_status = Column(String(30), nullable=True)

    # Replaces the assistant instructions for this run only
    dynamic_prompt = Column(Text, nullable=True)

    output_field = "output_text"
