import logging
import math
import os
import re
from datetime import datetime, timedelta
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from buzzsmile.api.deps import invalidate_user_cache, require_admin
from buzzsmile.core.config import settings
from buzzsmile.core.security import generate_temporary_password, hash_password
from buzzsmile.database.collections import get_users_collection, get_videos_collection, to_object_id
from buzzsmile.database.schemas.auth import NormalizedEmail
from buzzsmile.database.schemas.user import UserDocument, user_response
from buzzsmile.database.schemas.video import video_response
from buzzsmile.services import storage
from buzzsmile.services.credits import add_credits, deduct_credits, set_post_launch
from buzzsmile.utils.cache import delete_matching, video_list_cache

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_admin)])

READY_TO_EDIT_STATUSES = ("queued", "processing")
MAX_SAMPLE_TITLES = 5


class RoleRequest(BaseModel):
    role: str


class CreditsRequest(BaseModel):
    amount: Any = None
    email: Optional[str] = None


class CreateUserRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    email: NormalizedEmail
    password: Optional[str] = None
    role: Literal["user", "admin"] = "user"
    status: str = "active"


class UpdateUserRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[NormalizedEmail] = None
    role: Optional[Literal["user", "admin"]] = None
    status: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)


class StatusRequest(BaseModel):
    isActive: bool = False


class LaunchRequest(BaseModel):
    credits: Any = None


class FinalizeRequest(BaseModel):
    processedFilePath: Optional[str] = None
    processedUrl: Optional[str] = None


def _valid_amount(amount) -> bool:
    return isinstance(amount, (int, float)) and not isinstance(amount, bool) and math.isfinite(amount)


def _user_oid(user_id: str):
    oid = to_object_id(user_id)
    if oid is None:
        raise HTTPException(status_code=404, detail="User not found")
    return oid


async def _find_user(user_id: str) -> dict:
    user = await get_users_collection().find_one({"_id": _user_oid(user_id)})
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _credits_summary(user: dict, message: str = "Credits updated successfully") -> dict:
    return {
        "message": message,
        "user": {
            "id": str(user["_id"]),
            "email": user.get("email"),
            "name": user.get("name"),
            "credits": user.get("credits"),
        },
    }


# ---------- users ----------

@router.get("/users")
async def list_users():
    cursor = get_users_collection().find({}).sort("createdAt", -1)
    return [user_response(user) async for user in cursor]


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(payload: CreateUserRequest):
    users_collection = get_users_collection()
    if await users_collection.find_one({"email": payload.email}):
        raise HTTPException(status_code=400, detail="User already exists with this email")
    if not payload.password:
        raise HTTPException(status_code=400, detail="Password is required for new local users")

    user = UserDocument(
        email=payload.email,
        name=payload.name.strip(),
        password=hash_password(payload.password),
        role=payload.role,
        isActive=payload.status == "active",
    ).to_mongo()
    result = await users_collection.insert_one(user)
    logger.info("Admin created user %s (%s)", payload.email, payload.role)

    return {
        "message": "User created successfully",
        "user": {
            "id": str(result.inserted_id),
            "email": user["email"],
            "name": user["name"],
            "role": user["role"],
            "isActive": user["isActive"],
            "createdAt": user["createdAt"],
        },
    }


@router.put("/users/{user_id}")
async def update_user(user_id: str, payload: UpdateUserRequest):
    user = await _find_user(user_id)

    changes = {}
    if payload.name is not None:
        changes["name"] = payload.name.strip()
    if payload.email is not None and payload.email != user.get("email"):
        if await get_users_collection().find_one({"email": payload.email}):
            raise HTTPException(status_code=400, detail="User already exists with this email")
        changes["email"] = payload.email
    if payload.role is not None:
        changes["role"] = payload.role
    if payload.status is not None:
        changes["isActive"] = payload.status == "active"
    if payload.password:
        changes["password"] = hash_password(payload.password)
    changes["updatedAt"] = datetime.utcnow()

    await get_users_collection().update_one({"_id": user["_id"]}, {"$set": changes})
    invalidate_user_cache(user["_id"])
    return {"message": "User updated successfully", "user": user_response({**user, **changes})}


@router.put("/users/{user_id}/role")
async def update_role(user_id: str, payload: RoleRequest):
    if payload.role not in ("user", "admin"):
        raise HTTPException(status_code=400, detail="Invalid role")

    user = await _find_user(user_id)
    await get_users_collection().update_one(
        {"_id": user["_id"]}, {"$set": {"role": payload.role, "updatedAt": datetime.utcnow()}}
    )
    invalidate_user_cache(user["_id"])
    logger.info("Role of %s changed to %s", user.get("email"), payload.role)
    return user_response({**user, "role": payload.role})


@router.put("/users/{user_id}/status")
async def update_status(user_id: str, payload: StatusRequest):
    user = await _find_user(user_id)
    await get_users_collection().update_one(
        {"_id": user["_id"]}, {"$set": {"isActive": payload.isActive, "updatedAt": datetime.utcnow()}}
    )
    invalidate_user_cache(user["_id"])
    return {"message": "User status updated", "user": user_response({**user, "isActive": payload.isActive})}


@router.delete("/users/{user_id}")
async def delete_user(user_id: str):
    user = await _find_user(user_id)
    users_collection = get_users_collection()

    if user.get("role") == "admin" and await users_collection.count_documents({"role": "admin"}) <= 1:
        raise HTTPException(status_code=400, detail="Cannot delete the last admin user")

    await users_collection.delete_one({"_id": user["_id"]})
    invalidate_user_cache(user["_id"])
    logger.info("Deleted user %s", user.get("email"))
    return {"message": "User deleted successfully"}


@router.post("/users/{user_id}/reset-password")
async def reset_user_password(user_id: str):
    user = await _find_user(user_id)
    temporary = generate_temporary_password()
    await get_users_collection().update_one(
        {"_id": user["_id"]},
        {"$set": {"password": hash_password(temporary), "updatedAt": datetime.utcnow()}},
    )
    invalidate_user_cache(user["_id"])
    logger.info("Temporary password issued for %s", user.get("email"))
    # TODO: email the temporary password to the user instead of returning it
    return {
        "message": "Password reset successfully and temporary password generated.",
        "tempPassword": temporary,
    }


@router.post("/users/credits/by-email")
async def add_credits_by_email(payload: CreditsRequest):
    if not payload.email:
        raise HTTPException(status_code=400, detail="Email is required")
    if not _valid_amount(payload.amount):
        raise HTTPException(status_code=400, detail="Invalid amount. Must be a number.")

    users_collection = get_users_collection()
    user = await users_collection.find_one({"email": payload.email.strip().lower()})
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    await add_credits(user["_id"], payload.amount)
    return _credits_summary(await users_collection.find_one({"_id": user["_id"]}))


@router.post("/users/{user_id}/credits")
async def add_credits_by_id(user_id: str, payload: CreditsRequest):
    if not _valid_amount(payload.amount):
        raise HTTPException(status_code=400, detail="Invalid amount. Must be a number.")

    oid = _user_oid(user_id)
    if not await add_credits(oid, payload.amount):
        raise HTTPException(status_code=404, detail="User not found")
    return _credits_summary(await get_users_collection().find_one({"_id": oid}))


@router.post("/users/{user_id}/launch")
async def launch_user(user_id: str, payload: Optional[LaunchRequest] = None):
    """End a user's pre-launch period and start charging credits."""
    amount = payload.credits if payload else None
    if amount is not None and not _valid_amount(amount):
        raise HTTPException(status_code=400, detail="Invalid amount. Must be a number.")

    oid = _user_oid(user_id)
    if not await set_post_launch(oid, amount):
        raise HTTPException(status_code=404, detail="User not found")
    return _credits_summary(await get_users_collection().find_one({"_id": oid}), "User moved to post-launch")


# ---------- videos ----------

@router.get("/videos")
async def list_videos(page: int = 1, limit: int = 20, status: Optional[str] = None, q: str = ""):
    page = max(page, 1)
    limit = min(max(limit, 1), 100)

    query = {}
    if status == "public":
        query["isPublic"] = True
    elif status == "private":
        query["isPublic"] = False

    q = q.strip()
    if q:
        pattern = {"$regex": re.escape(q), "$options": "i"}
        query["$or"] = [{"title": pattern}, {"description": pattern}]

    videos_collection = get_videos_collection()
    total = await videos_collection.count_documents(query)
    cursor = videos_collection.find(query).sort("createdAt", -1).skip((page - 1) * limit).limit(limit)
    videos = await cursor.to_list(length=limit)

    owner_ids = list({v["owner"] for v in videos if v.get("owner")})
    owners = {
        u["_id"]: {"name": u.get("name"), "email": u.get("email")}
        async for u in get_users_collection().find({"_id": {"$in": owner_ids}}, {"name": 1, "email": 1})
    }

    return {
        "videos": [{**video_response(v), "user": owners.get(v.get("owner"))} for v in videos],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": max(math.ceil(total / limit), 1),
        },
    }


@router.get("/videos/ready-to-edit")
async def ready_to_edit():
    """Users with queued or processing videos, grouped per owner."""
    cursor = get_videos_collection().find(
        {"status": {"$in": list(READY_TO_EDIT_STATUSES)}}, {"owner": 1, "title": 1}
    )
    by_user = {}
    async for video in cursor:
        owner = video.get("owner")
        if owner is None:
            continue
        entry = by_user.setdefault(owner, {"userId": str(owner), "videoCount": 0, "sampleTitles": []})
        entry["videoCount"] += 1
        if video.get("title") and len(entry["sampleTitles"]) < MAX_SAMPLE_TITLES:
            entry["sampleTitles"].append(video["title"])

    async for user in get_users_collection().find({"_id": {"$in": list(by_user)}}, {"name": 1, "email": 1}):
        by_user[user["_id"]].update(name=user.get("name"), email=user.get("email"))

    return {"users": list(by_user.values())}


@router.delete("/videos/{video_id}")
async def delete_video(video_id: str):
    oid = to_object_id(video_id)
    if oid is None or (await get_videos_collection().delete_one({"_id": oid})).deleted_count == 0:
        raise HTTPException(status_code=404, detail="Video not found")
    logger.info("Admin deleted video %s", video_id)
    return {"message": "Video deleted successfully"}


@router.put("/videos/{video_id}/finalize")
async def finalize_video(video_id: str, payload: Optional[FinalizeRequest] = None):
    """
    Close the manual-editing loop for a video.

    Attaches the edited output, marks the video ready and charges the owner
    one credit and one video slot (credit-exempt owners are not charged).
    """
    payload = payload or FinalizeRequest()
    oid = to_object_id(video_id)
    video = await get_videos_collection().find_one({"_id": oid}) if oid else None
    if video is None:
        raise HTTPException(status_code=404, detail="Video not found")
    owner_id = video.get("owner")
    if owner_id is None:
        raise HTTPException(status_code=400, detail="Video owner missing")
    if payload.processedFilePath and not os.path.isfile(payload.processedFilePath):
        raise HTTPException(status_code=400, detail="Processed file not found")

    now = datetime.utcnow()
    changes = {"status": "ready", "processedAt": now, "updatedAt": now}
    if payload.processedFilePath:
        changes["processedFilePath"] = payload.processedFilePath
        changes["downloadExpiresAt"] = now + timedelta(days=settings.DOWNLOAD_RETENTION_DAYS)
    if payload.processedUrl:
        changes["processedUrl"] = payload.processedUrl
    await get_videos_collection().update_one({"_id": oid}, {"$set": changes})
    video.update(changes)

    owner = await get_users_collection().find_one({"_id": owner_id})
    if owner is not None and await deduct_credits(owner, 1):
        await get_users_collection().update_one({"_id": owner_id}, {"$inc": {"videoCount": 1}})
    delete_matching(video_list_cache, str(owner_id))

    logger.info("Video %s finalized for user %s", video_id, owner_id)
    return {"message": "Video finalized and ready", "videoId": video_id, "video": video_response(video)}


def _path_id(value: str, label: str) -> str:
    # ids become directory names; anything but an ObjectId is rejected
    if to_object_id(value) is None:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID format")
    return value


@router.get("/uploads-to-edit/user/{user_id}")
async def list_uploads_to_edit(user_id: str):
    files = await run_in_threadpool(storage.uploads_to_edit, _path_id(user_id, "user"))
    return {"files": files}


# ---------- video backups ----------

@router.get("/video-backups")
async def list_video_backups():
    return {"backups": await run_in_threadpool(storage.all_video_backups)}


@router.get("/video-backups/stats")
async def video_backup_stats():
    return {"stats": await run_in_threadpool(storage.video_backup_stats)}


@router.get("/video-backups/user/{user_id}")
async def list_user_video_backups(user_id: str):
    backups = await run_in_threadpool(storage.user_video_backups, _path_id(user_id, "user"))
    return {"backups": backups}


@router.delete("/video-backups/{user_id}/{video_id}")
async def delete_video_backup(user_id: str, video_id: str):
    deleted = await run_in_threadpool(
        storage.delete_video_backup, _path_id(user_id, "user"), _path_id(video_id, "video")
    )
    if not deleted:
        raise HTTPException(status_code=404, detail="Video backup not found")
    return {"message": "Video backup deleted successfully"}


@router.get("/stats")
async def admin_stats():
    users_collection = get_users_collection()
    return {
        "users": await users_collection.count_documents({}),
        "videos": await get_videos_collection().count_documents({}),
        "admins": await users_collection.count_documents({"role": "admin"}),
    }
