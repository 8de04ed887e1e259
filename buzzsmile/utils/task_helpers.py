import logging
from datetime import datetime, timedelta
from pathlib import Path

from bson import ObjectId

from buzzsmile.core.config import settings
from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.services import media

logger = logging.getLogger(__name__)


def _videos():
    if mongodb_sync.db is None:
        raise RuntimeError("MongoDB (sync) not initialized")
    return mongodb_sync.db["videos"]


def _oid(video_id):
    return video_id if isinstance(video_id, ObjectId) else ObjectId(str(video_id))


def get_video(video_id) -> dict:
    video = _videos().find_one({"_id": _oid(video_id)})
    if video is None:
        raise RuntimeError(f"Video not found: {video_id}")
    return video


def update_video(video_id, fields: dict):
    fields = {**fields, "updatedAt": datetime.utcnow()}
    result = _videos().update_one({"_id": _oid(video_id)}, {"$set": fields})
    if result.matched_count == 0:
        logger.warning("No video found for id=%s", video_id)
    return result


def start_processing(video_id, job_id: str) -> datetime:
    """
    Move a video into `processing` and open its editing job.

    Returns the start time so the caller can compute the duration.
    """
    started_at = datetime.utcnow()
    update_video(video_id, {
        "status": "processing",
        "processingStartedAt": started_at,
        "editingJob": {"jobId": job_id, "startedAt": started_at, "progress": 0},
    })
    logger.info("Video processing started | video=%s | job=%s", video_id, job_id)
    return started_at


def update_progress(video_id, progress: int):
    progress = max(0, min(100, int(progress)))
    update_video(video_id, {"editingJob.progress": progress})
    logger.info("Processing video %s: %s%% complete", video_id, progress)


def complete_processing(video_id, output_path: str, metadata: dict, started_at: datetime):
    now = datetime.utcnow()
    update_video(video_id, {
        "status": "ready",
        "processedAt": now,
        "processingDuration": int((now - started_at).total_seconds() * 1000),
        "processedFilePath": output_path,
        "downloadExpiresAt": now + timedelta(days=settings.DOWNLOAD_RETENTION_DAYS),
        "duration": metadata.get("duration") or 0,
        "metadata": {k: metadata.get(k) for k in ("width", "height", "bitrate", "fps")},
        "editingJob.progress": 100,
        "editingJob.completedAt": now,
    })
    logger.info("Video processing completed | video=%s | output=%s", video_id, output_path)


def mark_video_failed(video_id, error_message: str):
    """
    Record a terminal processing failure.

    Never raises: this runs from error paths where the original exception is
    the one worth propagating.
    """
    try:
        update_video(video_id, {
            "status": "failed",
            "failedAt": datetime.utcnow(),
            "editingJob.errorMessage": error_message,
        })
        logger.error("Video processing failed | video=%s | error=%s", video_id, error_message)
    except Exception:
        logger.exception("Failed to mark video %s as failed", video_id)


def source_paths(video: dict) -> list:
    sources = [s["filePath"] for s in video.get("sourceFiles") or [] if s.get("filePath")]
    return sources or [video["filePath"]]


def process_inline(video_id, job_id: str):
    """Fallback used when the task broker is unreachable; runs in the API process."""
    mongodb_sync.connect()
    try:
        run_video_processing(video_id, job_id)
    except Exception as e:
        logger.exception("In-process processing failed for video %s", video_id)
        mark_video_failed(video_id, str(e))


def run_video_processing(video_id, job_id: str) -> dict:
    """Transcode (or merge) a video's sources into one MP4 and record the result."""
    video = get_video(video_id)
    started_at = start_processing(video_id, job_id)

    processed_dir = Path(settings.UPLOAD_DIR) / "processed"
    output_path = str(processed_dir / f"{video['_id']}.mp4")

    media.concat_to_mp4(source_paths(video), output_path)
    update_progress(video_id, 80)

    metadata = media.read_metadata(output_path)
    if not video.get("thumbnailPath"):
        try:
            thumbnail = media.generate_thumbnail(output_path, Path(settings.UPLOAD_DIR) / "thumbnails", video["_id"])
            update_video(video_id, {"thumbnailPath": thumbnail})
        except media.MediaError:
            logger.warning("Thumbnail generation failed for video %s", video_id, exc_info=True)

    if video.get("isMultipleFiles"):
        # the merged output replaces the placeholder name and first-clip path
        update_video(video_id, {"filename": Path(output_path).name, "filePath": output_path, "format": "mp4"})

    complete_processing(video_id, output_path, metadata, started_at)
    return {"videoId": str(video["_id"]), "jobId": job_id, "status": "ready", "output": output_path}
