import time
from datetime import datetime

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from buzzsmile.core import database
from buzzsmile.core.config import settings
from buzzsmile.services import media

router = APIRouter()

STARTED_AT = time.monotonic()


def _uptime() -> float:
    return round(time.monotonic() - STARTED_AT, 1)


@router.get("/")
async def health():
    db_ok = await database.ping()
    return {
        "status": "healthy" if db_ok else "unhealthy",
        "timestamp": datetime.utcnow(),
        "uptime": _uptime(),
        "environment": settings.ENVIRONMENT,
        "services": {"database": "connected" if db_ok else "disconnected"},
    }


@router.get("/live")
async def liveness():
    return {"status": "alive", "timestamp": datetime.utcnow()}


@router.get("/ready")
async def readiness():
    if not await database.ping():
        return JSONResponse(status_code=503, content={"status": "not ready", "database": "disconnected"})
    return {"status": "ready", "database": "connected"}


@router.get("/ffmpeg")
async def ffmpeg_status():
    available = await run_in_threadpool(media.ffmpeg_available)
    return {"ffmpeg": available, "ffmpegPath": media.FFMPEG_BIN, "ffprobePath": media.FFPROBE_BIN}
