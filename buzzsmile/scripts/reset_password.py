#!/usr/bin/env python3
"""Set a user's password, generating a random one when none is given.

Prints `{"status": "RESET_OK", "email": ..., "tempPassword": ...}` on success.

Usage:
    python -m buzzsmile.scripts.reset_password --email EMAIL [--password PASSWORD]
"""

import argparse
import json
import logging
import sys
from datetime import datetime

from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.core.security import generate_temporary_password, hash_password
from buzzsmile.utils.logger import configure_logging

logger = logging.getLogger(__name__)


def reset_password(db, email: str, password: str = None):
    """Returns the new plain-text password, or None when the user does not exist."""
    users = db["users"]
    email = email.strip().lower()
    user = users.find_one({"email": email})
    if user is None:
        return None

    password = password or generate_temporary_password()
    users.update_one(
        {"_id": user["_id"]},
        {
            "$set": {"password": hash_password(password), "provider": "local", "updatedAt": datetime.utcnow()},
            "$unset": {"resetPasswordToken": "", "resetPasswordExpires": ""},
        },
    )
    return password


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Reset a user's password.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", help="New password (random when omitted)")
    args = parser.parse_args(argv)
    configure_logging()
    try:
        mongodb_sync.connect()
        password = reset_password(mongodb_sync.db, args.email, args.password)
        if password is None:
            logger.error("NOT_FOUND: %s", args.email)
            return 1
        print(json.dumps({"status": "RESET_OK", "email": args.email.strip().lower(), "tempPassword": password}))
        return 0
    except Exception:
        logger.exception("Password reset failed")
        return 1
    finally:
        mongodb_sync.close()


if __name__ == "__main__":
    sys.exit(main())
