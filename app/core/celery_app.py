from celery import Celery
from celery.schedules import crontab
from app.core.config import settings

# Initialize Celery
celery_app = Celery(
    "tasks",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "app.tasks.job_tasks",
        "app.tasks.quota_tasks"
    ]
)

celery_app.conf.update(
    task_track_started=True,
    # A job whose worker dies is redelivered instead of lost
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        'sweep-quotas-daily': {
            'task': 'tasks.sweep_quotas',
            'schedule': crontab(hour=settings.QUOTA_SWEEP_HOUR, minute=settings.QUOTA_SWEEP_MINUTE),
        },
    },
)
