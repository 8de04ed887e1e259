#!/usr/bin/env python3
"""Check a password against the stored hash of a user.

Usage:
    python -m buzzsmile.scripts.verify_password --email EMAIL --password PASSWORD
"""

import argparse
import logging
import sys

from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.core.security import verify_password
from buzzsmile.utils.logger import configure_logging

logger = logging.getLogger(__name__)


def check_password(db, email: str, password: str):
    user = db["users"].find_one({"email": email.strip().lower()})
    if user is None:
        return None
    return {
        "compare": verify_password(password, user.get("password") or ""),
        "isActive": user.get("isActive", True),
        "provider": user.get("provider", "local"),
    }


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Verify a user's password.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    args = parser.parse_args(argv)
    configure_logging()
    try:
        mongodb_sync.connect()
        logger.info("Connected to: %s", mongodb_sync.db.name)
        result = check_password(mongodb_sync.db, args.email, args.password)
        if result is None:
            print("NOT_FOUND")
            return 1
        print("COMPARE_RESULT:", result["compare"])
        print("IS_ACTIVE:", result["isActive"])
        print("PROVIDER:", result["provider"])
        return 0
    except Exception:
        logger.exception("Password verification failed")
        return 1
    finally:
        mongodb_sync.close()


if __name__ == "__main__":
    sys.exit(main())
