import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from buzzsmile.core.security import InvalidToken, TokenExpired, decode_access_token
from buzzsmile.database.collections import get_users_collection, to_object_id
from buzzsmile.utils.cache import user_cache

logger = logging.getLogger(__name__)


def extract_token(request: Request) -> Optional[str]:
    """Bearer header first, then ?token=, then the `token` cookie."""
    header = request.headers.get("Authorization") or ""
    if header.startswith("Bearer "):
        token = header[len("Bearer "):].strip()
        if token:
            return token
    return request.query_params.get("token") or request.cookies.get("token")


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=message)


async def load_user(user_id) -> Optional[dict]:
    cached = user_cache.get(str(user_id))
    if cached is not None:
        return cached

    oid = to_object_id(user_id)
    if oid is None:
        return None
    user = await get_users_collection().find_one({"_id": oid})
    if user is not None:
        user_cache[str(user_id)] = user
    return user


def invalidate_user_cache(user_id):
    user_cache.pop(str(user_id), None)


async def get_current_user(request: Request) -> dict:
    token = extract_token(request)
    if not token:
        raise _unauthorized("Access denied. No token provided.")

    try:
        payload = decode_access_token(token)
    except TokenExpired:
        raise _unauthorized("Token expired.")
    except InvalidToken:
        raise _unauthorized("Invalid token.")

    user = await load_user(payload.get("userId"))
    if user is None:
        raise _unauthorized("Invalid token. User not found.")
    if not user.get("isActive", True):
        raise _unauthorized("Account is deactivated.")
    return user


async def get_optional_user(request: Request) -> Optional[dict]:
    token = extract_token(request)
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except InvalidToken:
        return None
    user = await load_user(payload.get("userId"))
    if user is None or not user.get("isActive", True):
        return None
    return user


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
