#!/usr/bin/env python3
"""Send a sample "video queued" notification to the configured Discord webhook.

Usage:
    python -m buzzsmile.scripts.test_discord
"""

import argparse
import logging
import sys
import time

from buzzsmile.services.discord import notify_video_queued
from buzzsmile.utils.logger import configure_logging

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Send a test Discord webhook message.")
    parser.parse_args(argv)
    configure_logging()

    result = notify_video_queued(
        {"name": "Webhook Tester", "email": "tester@example.com"},
        {"_id": "test123", "title": "Test Video"},
        f"job_{int(time.time() * 1000)}",
    )
    logger.info("Discord webhook test result: %s", result)
    return 0 if result.get("ok") else 1


if __name__ == "__main__":
    sys.exit(main())
