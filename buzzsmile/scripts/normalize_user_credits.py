#!/usr/bin/env python3
"""Normalise every user's credits and subscription sub-documents.

Usage:
    python -m buzzsmile.scripts.normalize_user_credits [--dry-run]
"""

import argparse
import logging
import math
import sys
from datetime import datetime, timezone

from dateutil import parser as date_parser

from buzzsmile.core.config import settings
from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.database.schemas.user import SUBSCRIPTION_PLANS
from buzzsmile.utils.logger import configure_logging

logger = logging.getLogger(__name__)

EPOCH_MS_THRESHOLD = 100_000_000


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def coerce_last_reset(value, now: datetime) -> datetime:
    if _is_number(value):
        # large numbers are epoch milliseconds
        return datetime.utcfromtimestamp(value / 1000) if value > EPOCH_MS_THRESHOLD else now
    if isinstance(value, str):
        try:
            parsed = date_parser.parse(value)
        except (ValueError, OverflowError):
            return now
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    return now


def normalize_user(user: dict, now: datetime = None) -> dict:
    """Return the `$set` changes needed for one user (empty when already clean)."""
    now = now or datetime.utcnow()
    changes = {}

    credits = user.get("credits")
    if not isinstance(credits, dict):
        changes["credits"] = {"balance": settings.DEFAULT_CREDITS, "used": 0, "lastReset": now}
    else:
        if not _is_number(credits.get("balance")):
            changes["credits.balance"] = settings.DEFAULT_CREDITS
        if not _is_number(credits.get("used")):
            changes["credits.used"] = 0
        if not isinstance(credits.get("lastReset"), datetime):
            changes["credits.lastReset"] = coerce_last_reset(credits.get("lastReset"), now)

    subscription = user.get("subscription")
    legacy_plan = user.get("plan") if user.get("plan") in SUBSCRIPTION_PLANS else "free"
    if not isinstance(subscription, dict):
        changes["subscription"] = {
            "plan": legacy_plan,
            "videosProcessed": user.get("videoCount") or 0,
            "monthlyLimit": user.get("maxVideos") or 5,
        }
    else:
        if subscription.get("plan") not in SUBSCRIPTION_PLANS:
            changes["subscription.plan"] = legacy_plan
        if not _is_number(subscription.get("videosProcessed")):
            changes["subscription.videosProcessed"] = user.get("videoCount") or 0
        if not _is_number(subscription.get("monthlyLimit")):
            changes["subscription.monthlyLimit"] = user.get("maxVideos") or 5

    return changes


def normalize_all(db, dry_run: bool = False) -> int:
    users = db["users"]
    fixed = 0
    for user in users.find({}):
        changes = normalize_user(user)
        if not changes:
            continue
        if not dry_run:
            users.update_one({"_id": user["_id"]}, {"$set": changes})
        fixed += 1
        logger.info("Normalized credits/subscription for user %s: %s", user.get("email"), sorted(changes))
    return fixed


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Normalise user credits and subscriptions.")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing them")
    args = parser.parse_args(argv)
    configure_logging()
    try:
        mongodb_sync.connect()
        fixed = normalize_all(mongodb_sync.db, dry_run=args.dry_run)
        logger.info("Done. Fixed %s user records.", fixed)
        return 0
    except Exception:
        logger.exception("Normalization failed")
        return 1
    finally:
        mongodb_sync.close()


if __name__ == "__main__":
    sys.exit(main())
