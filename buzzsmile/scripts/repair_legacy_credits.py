#!/usr/bin/env python3
"""Convert legacy numeric (or missing) `credits` fields into credit objects.

Usage:
    python -m buzzsmile.scripts.repair_legacy_credits
"""

import argparse
import logging
import sys
from datetime import datetime

from bson.decimal128 import Decimal128
from bson.int64 import Int64

from buzzsmile.core.config import settings
from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.utils.logger import configure_logging

logger = logging.getLogger(__name__)

# BSON double (1), int (16), long (18), decimal (19)
NUMERIC_TYPES = (float, int, Int64, Decimal128)


def fresh_credits(now: datetime = None) -> dict:
    return {"balance": settings.DEFAULT_CREDITS, "used": 0, "lastReset": now or datetime.utcnow()}


def needs_repair(user: dict) -> bool:
    credits = user.get("credits")
    if credits is None:
        return True
    return isinstance(credits, NUMERIC_TYPES) and not isinstance(credits, bool)


def repair(db) -> int:
    users = db["users"]
    numeric = missing = 0

    for user in users.find({}, {"credits": 1, "email": 1}):
        if not needs_repair(user):
            continue
        users.update_one({"_id": user["_id"]}, {"$set": {"credits": fresh_credits()}})
        if user.get("credits") is None:
            missing += 1
        else:
            numeric += 1
            logger.debug("Converted numeric credits %r for %s", user["credits"], user.get("email"))

    if numeric:
        logger.info("Converted %s users with numeric credits to objects", numeric)
    if missing:
        logger.info("Added credits object to %s users missing credits", missing)
    return numeric + missing


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Repair legacy numeric user credits.")
    parser.parse_args(argv)
    configure_logging()
    try:
        mongodb_sync.connect()
        fixed = repair(mongodb_sync.db)
        logger.info("Done. Updated %s users.", fixed)
        return 0
    except Exception:
        logger.exception("Repair failed")
        return 1
    finally:
        mongodb_sync.close()


if __name__ == "__main__":
    sys.exit(main())
