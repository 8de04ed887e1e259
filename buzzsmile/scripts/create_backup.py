#!/usr/bin/env python3
"""Export the whole database to a timestamped backup directory.

Usage:
    python -m buzzsmile.scripts.create_backup [--output DIR]
"""

import argparse
import logging
import sys
from pathlib import Path

from buzzsmile.core.config import settings
from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.services.backup import export_database
from buzzsmile.utils.logger import configure_logging

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create a database backup.")
    parser.add_argument("--output", default=str(settings.BACKUP_DIR), help="Directory that receives the backup")
    args = parser.parse_args(argv)
    configure_logging()
    try:
        mongodb_sync.connect()
        result = export_database(mongodb_sync.db, Path(args.output))
        logger.info("Backup completed: %s", result["path"])
        return 0
    except Exception:
        logger.exception("Backup creation failed")
        return 1
    finally:
        mongodb_sync.close()


if __name__ == "__main__":
    sys.exit(main())
