from celery import Celery
from celery.schedules import crontab

from shopsync.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    'shopsync',
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=['shopsync.tasks.maintenance'],
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)

# Activity retention runs once a day, off the request path
celery_app.conf.beat_schedule = {
    'purge-activity-logs-daily': {
        'task': 'shopsync.tasks.maintenance.purge_activity_logs',
        'schedule': crontab(hour=3, minute=0),
    },
}

if __name__ == '__main__':
    celery_app.start()
