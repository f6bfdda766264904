import logging
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from app.repository.job_ledger_repository import JobLedgerRepository
from app.utils.file_manager import delete_local_file

logger = logging.getLogger(__name__)

QUEUE_FAILED = "Não foi possível enfileirar a execução. Tente novamente."


async def dispatch_job(
    db: AsyncSession,
    task,
    repository: JobLedgerRepository,
    job_id: int,
    owned_files: Iterable[str] = (),
) -> None:
    """
    Hands a freshly committed pending row to the worker queue. If the broker
    refuses it, the row is failed right away so it never stays pending.
    """
    try:
        task.delay(job_id)
    except Exception as e:
        logger.error(f"Could not enqueue {task.name} for job {job_id}: {e}")
        await repository.mark_failed(db, job_id, QUEUE_FAILED)
        for path in owned_files:
            delete_local_file(path)
        raise
    logger.info(f"Enqueued {task.name} for job {job_id}")
