import logging
import time

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from buzzsmile.api.deps import get_current_user
from buzzsmile.services import storage

logger = logging.getLogger(__name__)
router = APIRouter()

LOGO_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
LOGO_LIMIT = 20 * storage.MB


@router.post("/logo")
async def upload_logo(logo: UploadFile = File(None), user: dict = Depends(get_current_user)):
    if logo is None or not logo.filename:
        raise HTTPException(status_code=400, detail="No logo file provided")
    if logo.content_type not in LOGO_TYPES:
        raise HTTPException(status_code=400, detail="Invalid file type. Only JPEG, PNG, GIF, or WebP are allowed.")

    filename = f"{storage.safe_basename(logo.filename)}-{int(time.time() * 1000)}{storage.file_extension(logo.filename)}"
    destination = storage.upload_dir("logos") / filename
    try:
        await storage.save_upload(logo, destination, LOGO_LIMIT)
    except HTTPException as e:
        if e.status_code == 413:
            raise HTTPException(status_code=400, detail="Logo file size must be less than 20MB")
        raise

    logger.info("Logo uploaded by user %s: %s", user["_id"], filename)
    # relative path; the client prefixes its API base URL
    return {"message": "Logo uploaded successfully", "logoUrl": f"/uploads/logos/{filename}"}
