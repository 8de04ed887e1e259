import logging

from kombu.exceptions import OperationalError

from buzzsmile.app_celery.celery_app import celery_app
from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.utils.task_helpers import mark_video_failed, run_video_processing

logger = logging.getLogger(__name__)

RETRY_BASE_DELAY = 2  # seconds; doubled on every attempt


@celery_app.task(name="process_video", bind=True, max_retries=3)
def process_video(self, video_id: str):
    mongodb_sync.connect()
    job_id = self.request.id or f"job_{video_id}"
    try:
        return run_video_processing(video_id, job_id)
    except Exception as exc:
        if self.request.retries < self.max_retries:
            countdown = RETRY_BASE_DELAY * 2 ** self.request.retries
            logger.warning(
                "Processing of video %s failed (attempt %s), retrying in %ss: %s",
                video_id, self.request.retries + 1, countdown, exc,
            )
            raise self.retry(exc=exc, countdown=countdown)
        mark_video_failed(video_id, str(exc))
        raise


def _count(replies) -> int:
    return sum(len(tasks) for tasks in (replies or {}).values())


def queue_stats(timeout: float = 1.0) -> dict:
    """Waiting and active task counts reported by the running workers."""
    try:
        inspector = celery_app.control.inspect(timeout=timeout)
        active = inspector.active()
        reserved = inspector.reserved()
        scheduled = inspector.scheduled()
    except OperationalError:
        logger.warning("Task broker unavailable for queue stats", exc_info=True)
        return {"waiting": 0, "active": 0, "workers": 0, "message": "Queue not available - broker not connected"}

    stats = {
        "waiting": _count(reserved) + _count(scheduled),
        "active": _count(active),
        "workers": len(active or {}),
    }
    if active is None:
        stats["message"] = "No workers responding"
    return stats
