import logging
from datetime import datetime

from fastapi import HTTPException, status

from buzzsmile.core.config import settings
from buzzsmile.database.collections import get_users_collection
from buzzsmile.utils.cache import user_cache

logger = logging.getLogger(__name__)

CREDIT_FIELDS = {"credits": 1, "isPreLaunch": 1, "subscription": 1}


def is_credit_exempt(user: dict) -> bool:
    subscription = user.get("subscription") or {}
    return subscription.get("plan") == "god" or bool(user.get("isPreLaunch"))


def credit_balance(user: dict) -> float:
    credits = user.get("credits")
    if isinstance(credits, dict):
        return credits.get("balance") or 0
    # legacy numeric credits
    if isinstance(credits, (int, float)):
        return credits
    return 0


def _forget_user(user_id):
    user_cache.pop(str(user_id), None)


async def check_credits(user: dict):
    """
    Raise 403 unless the user may spend a credit.

    The balance is read from the database, not from the (possibly cached)
    user document the request was authenticated with.
    """
    if "_id" in user:
        fresh = await get_users_collection().find_one({"_id": user["_id"]}, CREDIT_FIELDS)
        if fresh is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        user = fresh
    if is_credit_exempt(user):
        return
    if credit_balance(user) <= 0:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "Insufficient credits",
                "error": "Insufficient credits",
                "details": "You need more credits to process videos. "
                           "Please purchase more credits or upgrade your plan.",
            },
        )


async def deduct_credits(user: dict, count: int = 1) -> bool:
    """Charge `count` credits. Failures are logged, never raised."""
    if is_credit_exempt(user):
        return False
    try:
        await get_users_collection().update_one(
            {"_id": user["_id"]},
            {"$inc": {"credits.balance": -count, "credits.used": count}},
        )
    except Exception:
        logger.exception("Credit deduction failed for user %s", user.get("email"))
        return False
    finally:
        _forget_user(user["_id"])
    logger.info("Deducted %s credits from user %s", count, user.get("email"))
    return True


async def add_credits(user_id, amount):
    result = await get_users_collection().update_one(
        {"_id": user_id},
        {"$inc": {"credits.balance": amount}},
    )
    _forget_user(user_id)
    logger.info("Added %s credits to user %s", amount, user_id)
    return result.matched_count > 0


async def set_post_launch(user_id, initial_credits: int = None) -> bool:
    initial_credits = settings.DEFAULT_CREDITS if initial_credits is None else initial_credits
    result = await get_users_collection().update_one(
        {"_id": user_id},
        {"$set": {
            "isPreLaunch": False,
            "credits.balance": initial_credits,
            "credits.lastReset": datetime.utcnow(),
        }},
    )
    _forget_user(user_id)
    logger.info("User %s set to post-launch with %s credits", user_id, initial_credits)
    return result.matched_count > 0
