from sqlalchemy import Column, Integer, String, ForeignKey, Text, Numeric
from app.models.base import Base
from app.models.job_ledger import JobLedgerMixin


class Transcription(JobLedgerMixin, Base):
    __tablename__ = "transcriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=True)
    audio_path = Column(String, nullable=True)
    original_file_name = Column(String, nullable=True)
    file_size_kb = Column(Numeric(12, 2), nullable=True)
    duration_seconds = Column(Numeric(10, 2), nullable=True)
    transcription_text = Column(Text, nullable=True)

    # Name of the output column the completion write must fill
    output_field = "transcription_text"
