#!/usr/bin/env python3
"""Assign every video to one user, recounting that user's videoCount.

Usage:
    python -m buzzsmile.scripts.fix_video_ownership --email EMAIL
"""

import argparse
import logging
import sys
from datetime import datetime

from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.utils.logger import configure_logging

logger = logging.getLogger(__name__)


def fix_ownership(db, email: str):
    """Returns the number of reassigned videos, or None when the user is unknown."""
    user = db["users"].find_one({"email": email.strip().lower()})
    if user is None:
        return None

    videos = db["videos"]
    result = videos.update_many(
        {"owner": {"$ne": user["_id"]}},
        {"$set": {"owner": user["_id"], "updatedAt": datetime.utcnow()}},
    )
    total = videos.count_documents({"owner": user["_id"]})
    db["users"].update_one({"_id": user["_id"]}, {"$set": {"videoCount": total}})
    logger.info("Reassigned %s videos to %s (%s total)", result.modified_count, user["email"], total)
    return result.modified_count


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Assign all videos to one user.")
    parser.add_argument("--email", required=True)
    args = parser.parse_args(argv)
    configure_logging()
    try:
        mongodb_sync.connect()
        if fix_ownership(mongodb_sync.db, args.email) is None:
            logger.error("User not found: %s", args.email)
            return 1
        return 0
    except Exception:
        logger.exception("Fixing video ownership failed")
        return 1
    finally:
        mongodb_sync.close()


if __name__ == "__main__":
    sys.exit(main())
