# app/tasks/quota_tasks.py
import asyncio
import logging
from datetime import datetime

from app.core.celery_app import celery_app
from app.core.database import DatabaseManager
from app.modules.quota.service import quota_service

logger = logging.getLogger(__name__)


async def _sweep(now: datetime):
    local_db_manager = DatabaseManager()
    try:
        async with local_db_manager.async_session_maker() as db:
            return await quota_service.sweep(db, now)
    finally:
        await local_db_manager.close()


@celery_app.task(name="tasks.sweep_quotas")
def sweep_quotas():
    """
    Daily maintenance: expires finished plans and rolls over creation quotas.
    Safe to run more than once.
    """
    logger.info("--- Running periodic task: quota sweep ---")
    return asyncio.run(_sweep(datetime.utcnow()))
