import json
import logging
import os
import time
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import FileResponse, JSONResponse, StreamingResponse
from kombu.exceptions import OperationalError
from pydantic import ValidationError

from buzzsmile.api.deps import get_current_user, get_optional_user
from buzzsmile.app_celery.tasks import process_video, queue_stats
from buzzsmile.core.config import settings
from buzzsmile.database.collections import get_users_collection, get_videos_collection, to_object_id
from buzzsmile.database.schemas.user import is_god_mode_admin
from buzzsmile.database.schemas.video import (
    LIST_FIELDS,
    EditingPreferences,
    ProcessRequest,
    SourceFile,
    VideoDocument,
    VideoUpdateRequest,
    video_response,
)
from buzzsmile.services import media, storage
from buzzsmile.services.credits import check_credits, deduct_credits
from buzzsmile.services.discord import notify_video_queued
from buzzsmile.utils.cache import delete_matching, video_list_cache
from buzzsmile.utils.task_helpers import process_inline

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_FILES_PER_UPLOAD = 10
UPLOAD_LIMIT = 1 * storage.GB
GOD_MODE_UPLOAD_LIMIT = 2 * storage.GB
MAX_PAGE_SIZE = 50
STREAM_CHUNK = 1024 * 1024
NO_STORE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


# ---------- helpers ----------

def parse_editing_data(raw: Optional[str]) -> Optional[dict]:
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring unparseable editingData: %.100s", raw)
        return None
    if not isinstance(data, dict):
        return None
    try:
        return EditingPreferences.model_validate(data).model_dump(exclude_none=True)
    except ValidationError:
        logger.warning("Ignoring malformed editingData: %.100s", raw)
        return None


def allowed_format(filename: str) -> bool:
    return storage.file_extension(filename).lstrip(".") in settings.ALLOWED_VIDEO_FORMATS


def parse_range(header: Optional[str], size: int):
    """
    Parse a single `bytes=start-end` range.

    Returns (start, end) inclusive, None when there is no usable header, and
    raises 416 for ranges outside the file.
    """
    if not header or not header.startswith("bytes=") or "," in header:
        return None
    start_text, _, end_text = header[len("bytes="):].strip().partition("-")
    try:
        if start_text == "":
            # suffix range: last N bytes
            length = int(end_text)
            start, end = max(0, size - length), size - 1
        else:
            start = int(start_text)
            end = int(end_text) if end_text else size - 1
    except ValueError:
        return None
    end = min(end, size - 1)
    if start > end or start >= size:
        raise HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail="Requested range not satisfiable",
            headers={"Content-Range": f"bytes */{size}"},
        )
    return start, end


def _iter_file(path, start: int, end: int):
    remaining = end - start + 1
    with open(path, "rb") as handle:
        handle.seek(start)
        while remaining > 0:
            chunk = handle.read(min(STREAM_CHUNK, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def clear_user_video_cache(user_id) -> int:
    cleared = delete_matching(video_list_cache, str(user_id))
    logger.debug("Cleared %s video cache entries for user %s", cleared, user_id)
    return cleared


def enqueue_processing(video_id, background_tasks: BackgroundTasks, options: dict = None) -> str:
    """Queue the Celery task; fall back to in-process work when the broker is down."""
    options = options or {}
    try:
        result = process_video.apply_async(
            args=[str(video_id)],
            countdown=options.get("delay") or None,
            priority=options.get("priority") or None,
        )
        return result.id
    except OperationalError:
        job_id = f"job_{int(time.time() * 1000)}_{video_id}"
        logger.warning("Task broker unavailable, processing video %s in-process (%s)", video_id, job_id)
        background_tasks.add_task(process_inline, str(video_id), job_id)
        return job_id


async def get_owned_video(video_id: str, user: dict, allow_admin: bool = False) -> dict:
    oid = to_object_id(video_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid video ID format")
    query = {"_id": oid}
    if not (allow_admin and user.get("role") == "admin"):
        query["owner"] = user["_id"]
    video = await get_videos_collection().find_one(query)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    return video


def _extract_media_info(video_path, video_id):
    thumbnail = media.generate_thumbnail(video_path, storage.upload_dir("thumbnails"), video_id)
    duration = media.get_video_duration(video_path)
    return thumbnail, duration


# ---------- routes ----------

@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_videos(
    background_tasks: BackgroundTasks,
    video: List[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    editingData: Optional[str] = Form(None),
    user: dict = Depends(get_current_user),
):
    await check_credits(user)

    files = [f for f in (video or []) if f.filename]
    if not files:
        raise HTTPException(status_code=400, detail="No video files provided")
    if len(files) > MAX_FILES_PER_UPLOAD:
        raise HTTPException(status_code=400, detail=f"At most {MAX_FILES_PER_UPLOAD} files per upload")

    for upload in files:
        if not allowed_format(upload.filename):
            raise HTTPException(
                status_code=400,
                detail=f"Invalid file format. Allowed formats: {', '.join(settings.ALLOWED_VIDEO_FORMATS)}",
            )

    god_mode = is_god_mode_admin(user)
    video_count, max_videos = user.get("videoCount", 0), user.get("maxVideos", 5)
    if not god_mode and video_count + len(files) > max_videos:
        raise HTTPException(
            status_code=403,
            detail={
                "message": f"Video limit would be exceeded. You can upload {max(0, max_videos - video_count)} more videos.",
                "currentCount": video_count,
                "maxVideos": max_videos,
                "attemptedUpload": len(files),
            },
        )

    size_limit = GOD_MODE_UPLOAD_LIMIT if god_mode else UPLOAD_LIMIT
    saved = []
    try:
        for upload in files:
            filename = storage.unique_name("video", upload.filename)
            destination = storage.upload_dir("videos") / filename
            size = await storage.save_upload(upload, destination, size_limit)
            saved.append(SourceFile(
                filename=filename,
                originalName=upload.filename,
                filePath=str(destination),
                fileSize=size,
                format=storage.file_extension(upload.filename).lstrip("."),
            ))
    except BaseException:
        for source in saved:
            storage.remove_file(source.filePath)
        raise

    editing_data = parse_editing_data(editingData)
    multiple = len(saved) > 1
    if multiple:
        # several sources are always merged into one output, editing data or not
        editing_data = {
            **(editing_data or {}),
            "multipleFiles": True,
            "fileCount": len(saved),
            "fileNames": [s.originalName for s in saved],
        }
        names = ", ".join(s.originalName for s in saved)
        document = VideoDocument(
            owner=user["_id"],
            title=(title or f"Combined Video - {names}")[:100],
            description=description or "",
            filename=f"merged-{int(time.time() * 1000)}.mp4",
            originalName=names,
            filePath=saved[0].filePath,
            fileSize=sum(s.fileSize for s in saved),
            format="mp4",
            status="processing",
            editingPreferences=editing_data,
            isMultipleFiles=True,
            sourceFiles=saved,
            sourceFileCount=len(saved),
        )
    else:
        source = saved[0]
        document = VideoDocument(
            owner=user["_id"],
            title=(title or source.originalName)[:100],
            description=description or "",
            filename=source.filename,
            originalName=source.originalName,
            filePath=source.filePath,
            fileSize=source.fileSize,
            format=source.format,
            status="processing" if editing_data is not None else "ready",
            editingPreferences=editing_data,
        )

    doc = document.to_mongo()
    try:
        result = await get_videos_collection().insert_one(doc)
    except BaseException:
        for source in saved:
            storage.remove_file(source.filePath)
        raise
    doc["_id"] = result.inserted_id
    video_id = doc["_id"]

    for source in saved:
        try:
            await run_in_threadpool(storage.backup_video, source.filePath, user["_id"], video_id, source.originalName)
        except OSError:
            logger.exception("Error backing up %s for video %s", source.originalName, video_id)

    if not multiple:
        try:
            thumbnail, duration = await run_in_threadpool(_extract_media_info, saved[0].filePath, video_id)
            await get_videos_collection().update_one(
                {"_id": video_id}, {"$set": {"thumbnailPath": thumbnail, "duration": duration}}
            )
            doc.update(thumbnailPath=thumbnail, duration=duration)
        except media.MediaError:
            logger.warning("Thumbnail/duration extraction failed for video %s", video_id, exc_info=True)

    if editing_data is not None:
        job_id = enqueue_processing(video_id, background_tasks)
        await get_videos_collection().update_one({"_id": video_id}, {"$set": {"jobId": job_id}})

    # one record per upload, whatever the number of source files
    await get_users_collection().update_one({"_id": user["_id"]}, {"$inc": {"videoCount": 1}})
    user["videoCount"] = video_count + 1
    clear_user_video_cache(user["_id"])

    await deduct_credits(user, len(saved))

    if multiple:
        message = f"{len(saved)} videos uploaded and merging started"
    elif editing_data is not None:
        message = "Video uploaded and processing started"
    else:
        message = "Video uploaded successfully"

    return {
        "message": message,
        "video": {
            "id": str(video_id),
            "title": doc["title"],
            "description": doc["description"],
            "filename": doc["filename"],
            "originalName": doc["originalName"],
            "fileSize": doc["fileSize"],
            "format": doc["format"],
            "status": doc["status"],
            "createdAt": doc["createdAt"],
            "isMultipleFiles": multiple,
            "sourceFileCount": len(saved),
        },
    }


@router.post("/clear-cache")
async def clear_cache(user: dict = Depends(get_current_user)):
    video_list_cache.clear()
    return {"message": "Video cache cleared successfully"}


@router.get("/")
async def list_videos(request: Request, page: int = 1, limit: int = 10, user: dict = Depends(get_current_user)):
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    user_id = str(user["_id"])

    cache_key = f"{user_id}_{page}_{limit}"
    result = video_list_cache.get(cache_key)
    if result is None:
        videos_collection = get_videos_collection()
        projection = {field: 1 for field in LIST_FIELDS}
        cursor = (
            videos_collection.find({"owner": user["_id"]}, projection)
            .sort("createdAt", -1)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        videos = await cursor.to_list(length=limit)
        total = await videos_collection.count_documents({"owner": user["_id"]})

        base_url = str(request.base_url).rstrip("/")
        result = jsonable_encoder({
            "videos": [
                {**video_response(v), "thumbnailUrl": f"{base_url}/api/videos/{v['_id']}/thumbnail"}
                for v in videos
            ],
            "pagination": {"current": page, "pages": -(-total // limit), "total": total},
        })
        video_list_cache[cache_key] = result

    return JSONResponse(content=result, headers=NO_STORE_HEADERS)


@router.get("/ready-count")
async def ready_count(user: dict = Depends(get_current_user)):
    count = await get_videos_collection().count_documents({"owner": user["_id"], "status": "ready"})
    return {"count": count}


@router.get("/processed")
async def processed_videos(user: dict = Depends(get_current_user)):
    cursor = get_videos_collection().find(
        {"owner": user["_id"], "processedFilePath": {"$exists": True}}
    ).sort("createdAt", -1)
    return {"videos": [video_response(v) async for v in cursor]}


@router.get("/queue/stats")
async def processing_queue_stats(user: dict = Depends(get_current_user)):
    stats = await run_in_threadpool(queue_stats)
    videos_collection = get_videos_collection()
    stats["completed"] = await videos_collection.count_documents({"editingJob.completedAt": {"$exists": True}})
    stats["failed"] = await videos_collection.count_documents({"status": "failed"})
    stats["total"] = stats["waiting"] + stats["active"] + stats["completed"] + stats["failed"]
    return stats


@router.get("/share/{video_id}")
async def shared_video(video_id: str, viewer: Optional[dict] = Depends(get_optional_user)):
    oid = to_object_id(video_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid video ID format")

    video = await get_videos_collection().find_one({"_id": oid})
    expires_at = (video or {}).get("shareExpiresAt")
    shared = bool(video) and video.get("isPublic") and not (expires_at and expires_at <= datetime.utcnow())
    # owners and admins may preview a link that is not live
    previewer = bool(video) and viewer is not None and (
        viewer["_id"] == video.get("owner") or viewer.get("role") == "admin"
    )
    if not (shared or previewer):
        raise HTTPException(status_code=404, detail="Video not found or not public")

    owner = await get_users_collection().find_one({"_id": video["owner"]}, {"name": 1})
    return {
        "_id": str(video["_id"]),
        "title": video.get("title"),
        "filename": video.get("filename"),
        "size": video.get("fileSize"),
        "duration": video.get("duration"),
        "status": video.get("status"),
        "createdAt": video.get("createdAt"),
        "shareExpiresAt": expires_at,
        "owner": {"name": (owner or {}).get("name") or "Anonymous"},
    }


@router.get("/{video_id}")
async def get_video(video_id: str, user: dict = Depends(get_current_user)):
    video = await get_owned_video(video_id, user)
    return {"video": video_response(video)}


@router.put("/{video_id}")
async def update_video(video_id: str, payload: VideoUpdateRequest, user: dict = Depends(get_current_user)):
    video = await get_owned_video(video_id, user)

    changes = {}
    if payload.title:
        changes["title"] = payload.title
    if payload.description is not None:
        changes["description"] = payload.description
    if payload.isPublic is not None:
        changes["isPublic"] = payload.isPublic
        if not payload.isPublic:
            changes["shareExpiresAt"] = None
    if payload.shareExpiresInDays is not None:
        changes["shareExpiresAt"] = datetime.utcnow() + timedelta(days=payload.shareExpiresInDays)
    changes["updatedAt"] = datetime.utcnow()

    await get_videos_collection().update_one({"_id": video["_id"]}, {"$set": changes})
    clear_user_video_cache(user["_id"])
    video.update(changes)

    return {
        "message": "Video updated successfully",
        "video": {
            "id": str(video["_id"]),
            "title": video.get("title"),
            "description": video.get("description"),
            "isPublic": video.get("isPublic", False),
            "shareExpiresAt": video.get("shareExpiresAt"),
            "status": video.get("status"),
            "updatedAt": video["updatedAt"],
        },
    }


@router.delete("/{video_id}")
async def delete_video(video_id: str, user: dict = Depends(get_current_user)):
    video = await get_owned_video(video_id, user)
    clear_user_video_cache(user["_id"])

    paths = {video.get("filePath"), video.get("thumbnailPath"), video.get("processedFilePath")}
    paths.update(s.get("filePath") for s in video.get("sourceFiles") or [])
    for path in filter(None, paths):
        if storage.remove_file(path):
            logger.info("Deleted file %s", path)

    result = await get_videos_collection().delete_one({"_id": video["_id"]})
    if result.deleted_count == 0:
        raise HTTPException(status_code=500, detail="Failed to delete video from database")

    await get_users_collection().update_one(
        {"_id": user["_id"], "videoCount": {"$gt": 0}}, {"$inc": {"videoCount": -1}}
    )
    clear_user_video_cache(user["_id"])
    logger.info("Video %s deleted by user %s", video_id, user["_id"])
    return {"message": "Video deleted successfully", "videoId": video_id, "success": True}


@router.get("/{video_id}/thumbnail")
async def get_thumbnail(video_id: str, user: dict = Depends(get_current_user)):
    video = await get_owned_video(video_id, user, allow_admin=True)

    thumbnail_path = video.get("thumbnailPath")
    if not thumbnail_path or not os.path.exists(thumbnail_path):
        try:
            thumbnail_path = await run_in_threadpool(
                media.generate_thumbnail, video["filePath"], storage.upload_dir("thumbnails"), video["_id"]
            )
        except media.MediaError:
            logger.warning("Thumbnail regeneration failed for video %s", video_id, exc_info=True)
            raise HTTPException(status_code=404, detail="Thumbnail not available")
        await get_videos_collection().update_one({"_id": video["_id"]}, {"$set": {"thumbnailPath": thumbnail_path}})

    return FileResponse(
        thumbnail_path,
        media_type="image/jpeg",
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.post("/{video_id}/process")
async def start_processing(
    video_id: str,
    background_tasks: BackgroundTasks,
    payload: Optional[ProcessRequest] = None,
    user: dict = Depends(get_current_user),
):
    video = await get_owned_video(video_id, user)
    if video.get("status") in ("processing", "queued"):
        raise HTTPException(status_code=400, detail="Video is already being processed")

    options = payload.editingOptions if payload else {}
    job_id = enqueue_processing(video["_id"], background_tasks, options)
    await get_videos_collection().update_one(
        {"_id": video["_id"]},
        {"$set": {"status": "queued", "queuedAt": datetime.utcnow(), "jobId": job_id}},
    )
    clear_user_video_cache(user["_id"])

    await run_in_threadpool(notify_video_queued, user, video, job_id)

    return {"message": "Video processing job added to queue", "jobId": job_id, "status": "queued"}


@router.get("/{video_id}/status")
async def processing_status(video_id: str, user: dict = Depends(get_current_user)):
    video = await get_owned_video(video_id, user)
    job = video.get("editingJob") or {}
    return {
        "videoId": str(video["_id"]),
        "status": video.get("status"),
        "progress": job.get("progress", 100 if video.get("status") == "ready" else 0),
        "jobId": job.get("jobId") or video.get("jobId"),
        "errorMessage": job.get("errorMessage"),
        "queuedAt": video.get("queuedAt"),
        "processingStartedAt": video.get("processingStartedAt"),
        "processedAt": video.get("processedAt"),
        "failedAt": video.get("failedAt"),
    }


@router.get("/{video_id}/stream")
async def stream_video(video_id: str, request: Request, user: dict = Depends(get_current_user)):
    video = await get_owned_video(video_id, user, allow_admin=True)
    path = video.get("filePath")
    if not path or not os.path.exists(path):
        raise HTTPException(status_code=404, detail="Video file not found")

    size = os.path.getsize(path)
    media_type = f"video/{video.get('format') or 'mp4'}"
    byte_range = parse_range(request.headers.get("range"), size)
    if byte_range is None:
        return FileResponse(path, media_type=media_type, headers={"Accept-Ranges": "bytes"})

    start, end = byte_range
    return StreamingResponse(
        _iter_file(path, start, end),
        status_code=status.HTTP_206_PARTIAL_CONTENT,
        media_type=media_type,
        headers={
            "Content-Range": f"bytes {start}-{end}/{size}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(end - start + 1),
        },
    )


@router.get("/{video_id}/download-processed")
async def download_processed(video_id: str, user: dict = Depends(get_current_user)):
    video = await get_owned_video(video_id, user)

    output_path = video.get("processedFilePath")
    if not output_path:
        raise HTTPException(status_code=400, detail="No processed video available")

    expires_at = video.get("downloadExpiresAt")
    if expires_at and expires_at <= datetime.utcnow():
        raise HTTPException(status_code=410, detail="Download link has expired")

    if not os.path.exists(output_path):
        raise HTTPException(status_code=404, detail="Processed video file not found")

    await get_videos_collection().update_one({"_id": video["_id"]}, {"$inc": {"downloadCount": 1}})
    logger.info("Video downloaded: %s by user %s", output_path, user["_id"])
    return FileResponse(output_path, media_type="video/mp4", filename=os.path.basename(output_path))
