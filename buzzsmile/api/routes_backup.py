import logging
import shutil
import tempfile

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from buzzsmile.api.deps import require_admin
from buzzsmile.core.config import settings
from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.services import backup

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_admin)])


def _create_backup() -> dict:
    mongodb_sync.connect()
    return backup.export_database(mongodb_sync.db, settings.BACKUP_DIR)


@router.post("/create")
async def create_backup():
    result = await run_in_threadpool(_create_backup)
    return {
        "message": "Backup created successfully",
        "backup": {
            "name": result["name"],
            "created": result["created"],
            "collections": result["collections"],
            "totalRecords": result["totalRecords"],
        },
    }


@router.get("/list")
async def list_backups():
    backups = await run_in_threadpool(backup.list_backups, settings.BACKUP_DIR)
    return {"backups": backups, "total": len(backups)}


@router.get("/download/{backup_name}")
async def download_backup(backup_name: str):
    backup_path = backup.resolve_backup(settings.BACKUP_DIR, backup_name)
    if backup_path is None:
        raise HTTPException(status_code=404, detail="Backup not found")

    work_dir = tempfile.mkdtemp(prefix="buzzsmile-backup-")
    try:
        archive = await run_in_threadpool(backup.archive_backup, backup_path, work_dir)
    except OSError:
        shutil.rmtree(work_dir, ignore_errors=True)
        raise
    logger.info("Backup downloaded: %s", backup_name)
    return FileResponse(
        archive,
        media_type="application/zip",
        filename=f"{backup_name}.zip",
        background=BackgroundTask(shutil.rmtree, work_dir, ignore_errors=True),
    )
