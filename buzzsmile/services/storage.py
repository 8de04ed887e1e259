import logging
import os
import random
import re
import shutil
import time
from datetime import datetime
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, UploadFile, status

from buzzsmile.core.config import settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
MB = 1024 * 1024
GB = 1024 * MB


def upload_root() -> Path:
    return Path(settings.UPLOAD_DIR)


def upload_dir(kind: str) -> Path:
    """`videos`, `profiles`, `logos`, `thumbnails`, `processed`, `backups` or `user_uploads_to_edit`."""
    path = upload_root() / kind
    path.mkdir(parents=True, exist_ok=True)
    return path


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def unique_name(prefix: str, original_name: str) -> str:
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10 ** 9)}"
    return f"{prefix}-{suffix}{file_extension(original_name)}"


def safe_basename(original_name: str) -> str:
    base = os.path.splitext(os.path.basename(original_name or ""))[0]
    return re.sub(r"[^a-zA-Z0-9_-]", "_", base) or "file"


async def save_upload(upload: UploadFile, destination: Path, max_bytes: int) -> int:
    """
    Stream an UploadFile to disk, enforcing the size limit.

    Returns the number of bytes written; removes the partial file and raises
    413 when the limit is exceeded.
    """
    written = 0
    try:
        with open(destination, "wb") as out:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise HTTPException(
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        detail=f"File too large. Max size is {max_bytes // MB}MB.",
                    )
                out.write(chunk)
    except BaseException:
        remove_file(destination)
        raise
    return written


def remove_file(path) -> bool:
    if not path:
        return False
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    except OSError:
        logger.warning("Could not delete %s", path, exc_info=True)
        return False
    return True


def _s3_client():
    return boto3.client(
        "s3",
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        region_name=settings.AWS_REGION,
    )


def backup_video(file_path, user_id, video_id, original_name: str) -> dict:
    """
    Copy an uploaded source file to the admin-only backup area.

    Always keeps a local copy under backups/<user>/<video>/; mirrors it to S3
    when AWS_S3_BUCKET is configured.
    """
    target_dir = upload_dir("backups") / str(user_id) / str(video_id)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / f"{safe_basename(original_name)}{file_extension(original_name)}"
    shutil.copy2(file_path, target)
    result = {"local": str(target), "s3_key": None}

    bucket_name = settings.AWS_S3_BUCKET
    if bucket_name:
        s3_key = f"backups/{user_id}/{video_id}/{target.name}"
        try:
            _s3_client().upload_file(str(target), bucket_name, s3_key)
            result["s3_key"] = s3_key
        except (BotoCoreError, ClientError):
            logger.exception("S3 backup failed for %s", s3_key)
    return result


def format_bytes(size: int) -> str:
    if not size:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    exponent = 0
    while size >= 1024 ** (exponent + 1) and exponent < len(units) - 1:
        exponent += 1
    return f"{round(size / 1024 ** exponent, 2):g} {units[exponent]}"


def _file_entry(path: Path, **extra) -> dict:
    stat = path.stat()
    return {
        "fileName": path.name,
        "filePath": str(path),
        "size": stat.st_size,
        "modifiedAt": datetime.utcfromtimestamp(stat.st_mtime),
        **extra,
    }


def user_video_backups(user_id) -> list:
    """Backed-up source files of one user, newest first."""
    user_dir = upload_dir("backups") / str(user_id)
    if not user_dir.is_dir():
        return []
    backups = [
        _file_entry(path, videoId=path.parent.name, type="original")
        for path in user_dir.glob("*/*")
        if path.is_file()
    ]
    return sorted(backups, key=lambda b: b["modifiedAt"], reverse=True)


def all_video_backups() -> dict:
    root = upload_dir("backups")
    return {entry.name: user_video_backups(entry.name) for entry in sorted(root.iterdir()) if entry.is_dir()}


def video_backup_stats() -> dict:
    backups = all_video_backups()
    total_size = sum(b["size"] for files in backups.values() for b in files)
    return {
        "totalUsers": len(backups),
        "totalFiles": sum(len(files) for files in backups.values()),
        "totalSize": total_size,
        "totalSizeFormatted": format_bytes(total_size),
    }


def delete_video_backup(user_id, video_id) -> bool:
    """Remove the local backup folder of one video and its S3 mirror; False when absent."""
    target = upload_dir("backups") / str(user_id) / str(video_id)
    if not target.is_dir():
        return False
    shutil.rmtree(target)

    bucket_name = settings.AWS_S3_BUCKET
    if bucket_name:
        prefix = f"backups/{user_id}/{video_id}/"
        try:
            s3 = _s3_client()
            listing = s3.list_objects_v2(Bucket=bucket_name, Prefix=prefix)
            keys = [{"Key": obj["Key"]} for obj in listing.get("Contents", [])]
            if keys:
                s3.delete_objects(Bucket=bucket_name, Delete={"Objects": keys})
        except (BotoCoreError, ClientError):
            logger.exception("S3 backup delete failed for %s", prefix)
    logger.info("Deleted video backup %s/%s", user_id, video_id)
    return True


def uploads_to_edit(user_id) -> list:
    """Files dropped in uploads/user_uploads_to_edit/<user> for manual editing."""
    user_dir = upload_dir("user_uploads_to_edit") / str(user_id)
    if not user_dir.is_dir():
        return []
    return [
        {
            "name": path.name,
            "size": path.stat().st_size,
            "modified": datetime.utcfromtimestamp(path.stat().st_mtime),
            "path": f"/uploads/user_uploads_to_edit/{user_id}/{path.name}",
        }
        for path in sorted(user_dir.iterdir())
        if path.is_file()
    ]
