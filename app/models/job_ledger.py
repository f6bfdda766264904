import enum
from sqlalchemy import Column, String, Text, Boolean, DateTime, func


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def in_flight(cls):
        return (cls.PENDING.value, cls.PROCESSING.value)


class JobLedgerMixin:
    """Columns shared by every per-capability execution record.

    status only moves pending -> processing -> completed|failed. The writes
    live in JobLedgerRepository; nothing else should assign `status`.
    """

    status = Column(String(20), nullable=False, default=JobStatus.PENDING.value, index=True)
    error_message = Column(Text, nullable=True)
    used_system_token = Column(Boolean, nullable=False, default=False)
    cancel_requested = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
