import asyncio
import logging
from typing import Type

from sqlalchemy.exc import OperationalError

from app.core.celery_app import celery_app
from app.core.database import DatabaseManager
from app.modules.runner.service import (
    AgentRunner,
    AssistantRunner,
    JobRunner,
    TranscriptionRunner,
)

logger = logging.getLogger(__name__)


async def _run_job(runner_cls: Type[JobRunner], job_id: int):
    # Each task gets its own engine; pooled connections are bound to the loop that opened them
    local_db_manager = DatabaseManager()
    try:
        runner = runner_cls(local_db_manager.async_session_maker)
        return await runner.run(job_id)
    finally:
        await local_db_manager.close()


# The runner already resolves every outcome to a terminal ledger state, so only
# infrastructure failures (broker, database) reach Celery's retry.

@celery_app.task(
    name="tasks.run_transcription_job",
    acks_late=True,
    bind=True,
    autoretry_for=(OperationalError, OSError),
    retry_backoff=True,
    max_retries=3,
    retry_jitter=True
)
def run_transcription_job(self, transcription_id: int):
    """Transcribes one uploaded audio file."""
    status = asyncio.run(_run_job(TranscriptionRunner, transcription_id))
    logger.info(f"[Celery Task] Transcription {transcription_id} finished with status {status}")
    return status


@celery_app.task(
    name="tasks.run_agent_job",
    acks_late=True,
    bind=True,
    autoretry_for=(OperationalError, OSError),
    retry_backoff=True,
    max_retries=3,
    retry_jitter=True
)
def run_agent_job(self, action_id: int):
    """Runs one single-shot agent action."""
    status = asyncio.run(_run_job(AgentRunner, action_id))
    logger.info(f"[Celery Task] Agent action {action_id} finished with status {status}")
    return status


@celery_app.task(
    name="tasks.run_assistant_job",
    acks_late=True,
    bind=True,
    autoretry_for=(OperationalError, OSError),
    retry_backoff=True,
    max_retries=3,
    retry_jitter=True
)
def run_assistant_job(self, history_id: int):
    """Runs one assistant thread/run on a transcription."""
    status = asyncio.run(_run_job(AssistantRunner, history_id))
    logger.info(f"[Celery Task] Assistant history {history_id} finished with status {status}")
    return status
