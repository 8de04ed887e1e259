# schemas/user.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from buzzsmile.core.config import settings

SOCIAL_PLATFORMS = ("facebook", "twitter", "instagram", "youtube", "linkedin", "tiktok")
SUBSCRIPTION_PLANS = ("free", "basic", "premium", "god")
ROLES = ("user", "admin")


class SocialMedia(BaseModel):
    facebook: str = ""
    twitter: str = ""
    instagram: str = ""
    youtube: str = ""
    linkedin: str = ""
    tiktok: str = ""


class Credits(BaseModel):
    balance: int = Field(default_factory=lambda: settings.DEFAULT_CREDITS)
    used: int = 0
    lastReset: datetime = Field(default_factory=datetime.utcnow)


class Subscription(BaseModel):
    plan: Literal["free", "basic", "premium", "god"] = "free"
    videosProcessed: int = 0
    monthlyLimit: int = 5


class UserDocument(BaseModel):
    """Shape of a freshly created `users` document, defaults included."""

    email: str
    name: str
    password: Optional[str] = None  # bcrypt hash
    provider: Literal["local", "google"] = "local"
    googleId: Optional[str] = None
    businessName: str = ""
    role: Literal["user", "admin"] = "user"
    subscription: Subscription = Field(default_factory=Subscription)
    credits: Credits = Field(default_factory=Credits)
    isPreLaunch: bool = True
    plan: Literal["free", "pro", "enterprise", "god"] = "free"
    videoCount: int = 0
    maxVideos: int = 5
    isActive: bool = True
    lastLogin: Optional[datetime] = None
    profilePicture: Optional[str] = None
    logo: Optional[str] = None
    socialMedia: SocialMedia = Field(default_factory=SocialMedia)
    linkedSocialAccounts: List[str] = Field(default_factory=list)
    createdAt: datetime = Field(default_factory=datetime.utcnow)
    updatedAt: datetime = Field(default_factory=datetime.utcnow)

    def to_mongo(self) -> dict:
        doc = self.model_dump()
        if doc["googleId"] is None:
            # keep the sparse index sparse
            doc.pop("googleId")
        return doc


def user_response(user: dict) -> dict:
    """Public projection of a user document; never includes the password hash."""
    return {
        "id": str(user["_id"]),
        "email": user.get("email"),
        "name": user.get("name"),
        "businessName": user.get("businessName", ""),
        "plan": user.get("plan", "free"),
        "videoCount": user.get("videoCount", 0),
        "maxVideos": user.get("maxVideos", 5),
        "lastLogin": user.get("lastLogin"),
        "role": user.get("role", "user"),
        "profilePicture": user.get("profilePicture"),
        "logo": user.get("logo"),
        "socialMedia": user.get("socialMedia") or SocialMedia().model_dump(),
        "linkedSocialAccounts": user.get("linkedSocialAccounts") or [],
        "credits": user.get("credits"),
        "subscription": user.get("subscription"),
        "isPreLaunch": user.get("isPreLaunch", False),
        "isActive": user.get("isActive", True),
        "createdAt": user.get("createdAt"),
    }


def is_god_mode_admin(user: dict) -> bool:
    subscription = user.get("subscription") or {}
    return user.get("role") == "admin" and (
        subscription.get("plan") == "god" or user.get("plan") == "god"
    )
