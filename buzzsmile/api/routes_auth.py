# routes/auth.py
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status

from buzzsmile.api.deps import get_current_user, invalidate_user_cache
from buzzsmile.core.config import settings
from buzzsmile.core.security import (
    RESET_TOKEN_TTL,
    create_access_token,
    generate_reset_token,
    hash_password,
    verify_password,
)
from buzzsmile.database.collections import get_users_collection
from buzzsmile.database.schemas.auth import (
    ChangePasswordRequest,
    DevResetPasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileUpdateRequest,
    ResetPasswordRequest,
    SignupRequest,
)
from buzzsmile.database.schemas.user import UserDocument, user_response
from buzzsmile.services.email import EmailDeliveryError, EmailNotConfigured, send_password_reset_email

logger = logging.getLogger(__name__)
router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, we have sent a password reset link."


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: SignupRequest):
    users_collection = get_users_collection()

    # 1. Check if user exists
    existing_user = await users_collection.find_one({"email": payload.email})
    if existing_user:
        raise HTTPException(status_code=400, detail="User already exists with this email")

    # 2. Insert user with a hashed password
    user = UserDocument(
        email=payload.email,
        name=payload.name,
        businessName=payload.businessName or "",
        password=hash_password(payload.password),
    ).to_mongo()
    result = await users_collection.insert_one(user)
    user["_id"] = result.inserted_id
    logger.info("Registered user %s", payload.email)

    return {
        "message": "User registered successfully",
        "token": create_access_token(user["_id"]),
        "user": user_response(user),
    }


@router.post("/login")
async def login(payload: LoginRequest):
    users_collection = get_users_collection()
    user = await users_collection.find_one({"email": payload.email})

    if not user or not verify_password(payload.password, user.get("password")):
        raise HTTPException(status_code=400, detail="Invalid credentials")

    if not user.get("isActive", True):
        raise HTTPException(status_code=401, detail="Account is deactivated.")

    now = datetime.utcnow()
    await users_collection.update_one({"_id": user["_id"]}, {"$set": {"lastLogin": now}})
    user["lastLogin"] = now
    invalidate_user_cache(user["_id"])

    return {
        "message": "Login successful",
        "token": create_access_token(user["_id"]),
        "user": user_response(user),
    }


@router.get("/me")
async def me(user: dict = Depends(get_current_user)):
    return {"user": user_response(user)}


@router.put("/profile")
async def update_profile(payload: ProfileUpdateRequest, user: dict = Depends(get_current_user)):
    changes = {}
    if payload.name:
        changes["name"] = payload.name
    if payload.businessName is not None:
        changes["businessName"] = payload.businessName

    if changes:
        changes["updatedAt"] = datetime.utcnow()
        await get_users_collection().update_one({"_id": user["_id"]}, {"$set": changes})
        invalidate_user_cache(user["_id"])

    return {"message": "Profile updated successfully", "user": user_response({**user, **changes})}


@router.put("/change-password")
async def change_password(payload: ChangePasswordRequest, user: dict = Depends(get_current_user)):
    if not verify_password(payload.currentPassword, user.get("password")):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    await get_users_collection().update_one(
        {"_id": user["_id"]},
        {"$set": {"password": hash_password(payload.newPassword), "updatedAt": datetime.utcnow()}},
    )
    invalidate_user_cache(user["_id"])
    return {"message": "Password changed successfully"}


@router.post("/forgot-password")
async def forgot_password(payload: ForgotPasswordRequest):
    users_collection = get_users_collection()
    user = await users_collection.find_one({"email": payload.email})
    if not user:
        # same answer whether or not the account exists
        return {"message": FORGOT_PASSWORD_MESSAGE}

    reset_token = generate_reset_token()
    await users_collection.update_one(
        {"_id": user["_id"]},
        {"$set": {
            "resetPasswordToken": reset_token,
            "resetPasswordExpires": datetime.utcnow() + RESET_TOKEN_TTL,
        }},
    )

    try:
        send_password_reset_email(payload.email, reset_token)
    except (EmailNotConfigured, EmailDeliveryError):
        logger.exception("Failed to send password reset email to %s", payload.email)
        raise HTTPException(
            status_code=500,
            detail="Error sending password reset email. Please try again later.",
        )

    return {"message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password")
async def reset_password(payload: ResetPasswordRequest):
    users_collection = get_users_collection()
    user = await users_collection.find_one({
        "resetPasswordToken": payload.token,
        "resetPasswordExpires": {"$gt": datetime.utcnow()},
    })
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    await users_collection.update_one(
        {"_id": user["_id"]},
        {
            "$set": {"password": hash_password(payload.password), "updatedAt": datetime.utcnow()},
            "$unset": {"resetPasswordToken": "", "resetPasswordExpires": ""},
        },
    )
    invalidate_user_cache(user["_id"])
    logger.info("Password reset successful for user %s", user["email"])
    return {"message": "Password has been reset successfully"}


@router.post("/dev/reset-password")
async def dev_reset_password(payload: DevResetPasswordRequest):
    if settings.is_production:
        raise HTTPException(status_code=404, detail="Not Found")

    users_collection = get_users_collection()
    user = await users_collection.find_one({"email": payload.email})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    await users_collection.update_one(
        {"_id": user["_id"]},
        {"$set": {"password": hash_password(payload.newPassword), "provider": "local"}},
    )
    invalidate_user_cache(user["_id"])
    return {"message": "Password reset successfully", "email": payload.email}
