import json
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path

from bson import json_util

logger = logging.getLogger(__name__)

MANIFEST_VERSION = "1.0.0"


def backup_name(now: datetime = None) -> str:
    now = now or datetime.now(timezone.utc)
    return "backup-" + now.strftime("%Y-%m-%dT%H-%M-%S-%fZ")


def export_database(db, backup_root) -> dict:
    """
    Dump every collection of `db` (a PyMongo Database) to JSON.

    Writes <backup_root>/backup-<timestamp>/database-backup.json and
    backup-manifest.json next to it; returns the manifest plus the path.
    """
    now = datetime.now(timezone.utc)
    backup_path = Path(backup_root) / backup_name(now)
    backup_path.mkdir(parents=True, exist_ok=True)
    logger.info("Creating backup: %s", backup_path.name)

    backup_data = {}
    for collection_name in sorted(db.list_collection_names()):
        logger.info("Exporting collection: %s", collection_name)
        backup_data[collection_name] = list(db[collection_name].find({}))

    # relaxed extended JSON keeps ObjectId/datetime values restorable
    (backup_path / "database-backup.json").write_text(
        json_util.dumps(backup_data, indent=2, json_options=json_util.RELAXED_JSON_OPTIONS),
        encoding="utf-8",
    )

    manifest = {
        "version": MANIFEST_VERSION,
        "type": "database-backup",
        "created": now.isoformat(),
        "collections": list(backup_data.keys()),
        "totalRecords": sum(len(docs) for docs in backup_data.values()),
    }
    (backup_path / "backup-manifest.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")

    logger.info(
        "Backup created: %s (%s collections, %s records)",
        backup_path, len(manifest["collections"]), manifest["totalRecords"],
    )
    return {**manifest, "name": backup_path.name, "path": str(backup_path)}


def _directory_size(path: Path) -> int:
    return sum(f.stat().st_size for f in path.rglob("*") if f.is_file())


def _created(path: Path) -> str:
    manifest = path / "backup-manifest.json"
    try:
        return json.loads(manifest.read_text(encoding="utf-8"))["created"]
    except (OSError, ValueError, KeyError):
        return datetime.fromtimestamp(path.stat().st_mtime, timezone.utc).isoformat()


def list_backups(backup_root) -> list:
    """Backup directories under `backup_root`, newest first."""
    root = Path(backup_root)
    if not root.is_dir():
        return []
    backups = [
        {"name": path.name, "created": _created(path), "size": _directory_size(path), "compressed": False}
        for path in root.iterdir()
        if path.is_dir() and path.name.startswith("backup-")
    ]
    return sorted(backups, key=lambda b: b["created"], reverse=True)


def resolve_backup(backup_root, name: str):
    """Path of backup `name`, or None when it is unknown or not a plain backup name."""
    if not name.startswith("backup-") or Path(name).name != name:
        return None
    path = Path(backup_root) / name
    return path if path.is_dir() else None


def archive_backup(backup_path: Path, work_dir) -> str:
    """Zip a backup directory into `work_dir`; returns the archive path."""
    base = Path(work_dir) / backup_path.name
    return shutil.make_archive(str(base), "zip", root_dir=backup_path.parent, base_dir=backup_path.name)
