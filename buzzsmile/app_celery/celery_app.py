from celery import Celery
from celery.signals import worker_process_init

from buzzsmile.core.config import settings
from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.utils.logger import configure_logging

celery_app = Celery(
    "buzzsmile",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,  # transcodes are long; one at a time per process
    result_expires=24 * 60 * 60,
)


@worker_process_init.connect
def init_worker(**kwargs):
    configure_logging()
    mongodb_sync.connect()


# Auto-discover tasks inside buzzsmile/app_celery
celery_app.autodiscover_tasks(["buzzsmile.app_celery"])
