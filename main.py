import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from buzzsmile.api.routes_admin import router as admin_router
from buzzsmile.api.routes_auth import router as auth_router
from buzzsmile.api.routes_backup import router as backup_router
from buzzsmile.api.routes_health import router as health_router
from buzzsmile.api.routes_oauth import router as oauth_router
from buzzsmile.api.routes_uploads import router as uploads_router
from buzzsmile.api.routes_users import router as users_router
from buzzsmile.api.routes_videos import router as videos_router
from buzzsmile.core.config import settings
from buzzsmile.core.database import close_mongo_connection, connect_to_mongo
from buzzsmile.utils.logger import configure_logging

configure_logging()
logger = logging.getLogger("buzzsmile.main")

app = FastAPI(title="Buzz Smile API")


@app.on_event("startup")
async def startup_event():
    await connect_to_mongo()


@app.on_event("shutdown")
async def shutdown_event():
    await close_mongo_connection()


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        content = {"message": exc.detail.get("message", "Error"), **exc.detail}
    else:
        content = {"message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(content), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]) or None,
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Validation failed", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = "Internal server error" if settings.is_production else str(exc) or "Internal server error"
    return JSONResponse(status_code=500, content={"message": message})


# Allow CORS (for frontend)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CLIENT_URLS or [settings.client_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(oauth_router, prefix="/auth", tags=["oauth"])
app.include_router(users_router, prefix="/api/users", tags=["users"])
app.include_router(videos_router, prefix="/api/videos", tags=["videos"])
app.include_router(uploads_router, prefix="/api/uploads", tags=["uploads"])
app.include_router(admin_router, prefix="/api/admin", tags=["admin"])
app.include_router(backup_router, prefix="/api/backup-simple", tags=["backup"])
app.include_router(health_router, prefix="/api/health", tags=["health"])

settings.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(settings.UPLOAD_DIR)), name="uploads")


@app.get("/")
async def root():
    return {"message": "Buzz Smile API", "environment": settings.ENVIRONMENT}


if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port)
