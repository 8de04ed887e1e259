import json
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel

from buzzsmile.api.deps import get_current_user, invalidate_user_cache
from buzzsmile.core.config import settings
from buzzsmile.database.collections import get_users_collection, get_videos_collection
from buzzsmile.database.schemas.user import SOCIAL_PLATFORMS, is_god_mode_admin, user_response
from buzzsmile.services import storage

logger = logging.getLogger(__name__)
router = APIRouter()

PROFILE_PICTURE_LIMIT = 20 * storage.MB
PLAN_VIDEO_LIMITS = {"pro": 50, "enterprise": 500}


class UpgradeRequest(BaseModel):
    plan: str


class SocialMediaRequest(BaseModel):
    socialMedia: Optional[dict] = None
    linkedSocialAccounts: Optional[List[str]] = None


def storage_limit(user: dict) -> Optional[int]:
    """Bytes the user may store; None means unlimited."""
    if is_god_mode_admin(user):
        return None
    plan = (user.get("subscription") or {}).get("plan") or user.get("plan") or "free"
    if plan in ("free", "basic"):
        return 1 * storage.GB
    if plan in ("premium", "pro", "enterprise"):
        return 10 * storage.GB
    return 2 * storage.GB


def _social_media(values: dict, fallback: dict = None) -> dict:
    fallback = fallback or {}
    return {p: values.get(p) or fallback.get(p) or "" for p in SOCIAL_PLATFORMS}


@router.get("/stats")
async def get_stats(user: dict = Depends(get_current_user)):
    cursor = get_videos_collection().find({"owner": user["_id"]}, {"fileSize": 1})
    storage_used = sum([video.get("fileSize") or 0 async for video in cursor])

    video_count = user.get("videoCount", 0)
    max_videos = user.get("maxVideos", 5)
    return {
        "stats": {
            "videoCount": video_count,
            "maxVideos": max_videos,
            "remainingVideos": max(0, max_videos - video_count),
            "plan": user.get("plan", "free"),
            "memberSince": user.get("createdAt"),
            "lastLogin": user.get("lastLogin"),
            "credits": user.get("credits") or {"balance": 0, "used": 0},
            "subscription": user.get("subscription") or {
                "plan": user.get("plan", "free"),
                "videosProcessed": video_count,
                "monthlyLimit": max_videos,
            },
            "role": user.get("role", "user"),
            "isPreLaunch": user.get("isPreLaunch", False),
            "storageUsed": storage_used,
            "storageLimit": storage_limit(user),
        }
    }


@router.post("/upgrade")
async def upgrade_plan(payload: UpgradeRequest, user: dict = Depends(get_current_user)):
    if payload.plan not in PLAN_VIDEO_LIMITS:
        raise HTTPException(status_code=400, detail="Invalid plan selected")

    # TODO: charge through the payment provider before changing the plan
    max_videos = PLAN_VIDEO_LIMITS[payload.plan]
    await get_users_collection().update_one(
        {"_id": user["_id"]},
        {"$set": {"plan": payload.plan, "maxVideos": max_videos, "updatedAt": datetime.utcnow()}},
    )
    invalidate_user_cache(user["_id"])

    return {
        "message": f"Successfully upgraded to {payload.plan} plan",
        "user": {
            "id": str(user["_id"]),
            "plan": payload.plan,
            "maxVideos": max_videos,
            "videoCount": user.get("videoCount", 0),
        },
    }


@router.put("/profile")
async def update_profile(
    request: Request,
    profilePicture: Optional[UploadFile] = File(None),
    socialMedia: Optional[str] = Form(None),
    logo: Optional[str] = Form(None),
    user: dict = Depends(get_current_user),
):
    changes = {}

    if socialMedia:
        try:
            parsed = json.loads(socialMedia)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid socialMedia format. Expecting JSON.")
        if not isinstance(parsed, dict):
            raise HTTPException(status_code=400, detail="Invalid socialMedia format. Expecting JSON.")
        changes["socialMedia"] = _social_media(parsed)

    if logo:
        changes["logo"] = logo

    if profilePicture is not None and profilePicture.filename:
        if not (profilePicture.content_type or "").startswith("image/"):
            raise HTTPException(status_code=400, detail="Only image files are allowed!")
        filename = storage.unique_name(f"profile-{user['_id']}", profilePicture.filename)
        destination = storage.upload_dir("profiles") / filename
        try:
            await storage.save_upload(profilePicture, destination, PROFILE_PICTURE_LIMIT)
        except HTTPException as e:
            if e.status_code == 413:
                raise HTTPException(status_code=413, detail="Image too large. Max size is 20MB.")
            raise

        old_picture = user.get("profilePicture")
        if old_picture and "/uploads/profiles/" in old_picture:
            storage.remove_file(storage.upload_dir("profiles") / old_picture.rsplit("/", 1)[-1])

        base_url = settings.API_BASE_URL or str(request.base_url).rstrip("/")
        changes["profilePicture"] = f"{base_url}/uploads/profiles/{filename}"

    if changes:
        changes["updatedAt"] = datetime.utcnow()
        await get_users_collection().update_one({"_id": user["_id"]}, {"$set": changes})
        invalidate_user_cache(user["_id"])

    return {"message": "Profile updated successfully", "user": user_response({**user, **changes})}


@router.put("/social-media")
async def update_social_media(payload: SocialMediaRequest, user: dict = Depends(get_current_user)):
    changes = {}
    if payload.socialMedia is not None:
        changes["socialMedia"] = _social_media(payload.socialMedia, user.get("socialMedia"))
    if payload.linkedSocialAccounts is not None:
        changes["linkedSocialAccounts"] = payload.linkedSocialAccounts

    if changes:
        changes["updatedAt"] = datetime.utcnow()
        await get_users_collection().update_one({"_id": user["_id"]}, {"$set": changes})
        invalidate_user_cache(user["_id"])

    return {"message": "Social media updated successfully", "user": user_response({**user, **changes})}
