#!/usr/bin/env python3
"""Change a user's role.

Usage:
    python -m buzzsmile.scripts.update_user_role --email EMAIL [--role admin|user]
"""

import argparse
import logging
import sys
from datetime import datetime

from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.database.schemas.user import ROLES
from buzzsmile.utils.logger import configure_logging

logger = logging.getLogger(__name__)


def update_role(db, email: str, role: str) -> bool:
    users = db["users"]
    user = users.find_one({"email": email.strip().lower()})
    if user is None:
        logger.error("User not found: %s", email)
        return False

    logger.info("Current role of %s: %s", user["email"], user.get("role", "user"))
    users.update_one({"_id": user["_id"]}, {"$set": {"role": role, "updatedAt": datetime.utcnow()}})
    logger.info("Role of %s updated to %s", user["email"], role)
    return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Update a user's role.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--role", choices=ROLES, default="admin")
    args = parser.parse_args(argv)
    configure_logging()
    try:
        mongodb_sync.connect()
        return 0 if update_role(mongodb_sync.db, args.email, args.role) else 1
    except Exception:
        logger.exception("Error updating user role")
        return 1
    finally:
        mongodb_sync.close()


if __name__ == "__main__":
    sys.exit(main())
