#!/usr/bin/env python3
"""Send a password-reset style email to check the mail configuration.

Usage:
    python -m buzzsmile.scripts.test_email --to ADDRESS
"""

import argparse
import logging
import sys

from buzzsmile.core.security import generate_reset_token
from buzzsmile.services.email import EmailDeliveryError, EmailNotConfigured, send_password_reset_email
from buzzsmile.utils.logger import configure_logging

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Send a test email.")
    parser.add_argument("--to", required=True, help="Recipient address")
    args = parser.parse_args(argv)
    configure_logging()
    try:
        result = send_password_reset_email(args.to, generate_reset_token())
    except (EmailNotConfigured, EmailDeliveryError) as e:
        logger.error("Email test failed: %s", e)
        return 1
    logger.info("Email sent via %s (id=%s)", result.get("provider"), result.get("id"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
