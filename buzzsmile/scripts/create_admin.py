#!/usr/bin/env python3
"""Create the first admin account (no-op when an admin already exists).

Usage:
    python -m buzzsmile.scripts.create_admin --email EMAIL --password PASSWORD [--name NAME]
"""

import argparse
import logging
import sys

from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.core.security import hash_password
from buzzsmile.database.schemas.user import UserDocument
from buzzsmile.utils.logger import configure_logging

logger = logging.getLogger(__name__)

ADMIN_MAX_VIDEOS = 999999


def create_admin(db, email: str, password: str, name: str = "Admin User"):
    """Insert an admin user; returns its id, or None when one already exists."""
    users = db["users"]
    existing = users.find_one({"role": "admin"})
    if existing:
        logger.info("Admin user already exists: %s", existing.get("email"))
        return None

    user = UserDocument(
        email=email.strip().lower(),
        password=hash_password(password),
        name=name,
        businessName="Buzz Smile Admin",
        role="admin",
        plan="enterprise",
        maxVideos=ADMIN_MAX_VIDEOS,
    ).to_mongo()
    user_id = users.insert_one(user).inserted_id
    logger.info("Admin user created: %s", user["email"])
    return user_id


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create the initial admin user.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default="Admin User")
    args = parser.parse_args(argv)
    configure_logging()

    if len(args.password) < 6:
        logger.error("Password must be at least 6 characters")
        return 1
    try:
        mongodb_sync.connect()
        create_admin(mongodb_sync.db, args.email, args.password, args.name)
        return 0
    except Exception:
        logger.exception("Error creating admin user")
        return 1
    finally:
        mongodb_sync.close()


if __name__ == "__main__":
    sys.exit(main())
