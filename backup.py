from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path

from config import BACKUP_KEEP
from domain.errors import PersistenceError

logger = logging.getLogger(__name__)

BACKUP_SUBDIR = "backups"


def create_backup(data_dir: str | Path, keep: int = BACKUP_KEEP) -> str | None:
    """Copy the JSON files of ``data_dir`` into ``backups/<timestamp>/``.

    Returns the snapshot directory, or None when there is nothing to copy.
    Only the newest ``keep`` snapshots are retained.
    """
    source = Path(data_dir)
    files = sorted(source.glob("*.json")) + sorted((source / "wallets").glob("*.json"))
    if not files:
        return None
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    target = source / BACKUP_SUBDIR / stamp
    try:
        for path in files:
            destination = target / path.relative_to(source)
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, destination)
    except OSError as exc:
        raise PersistenceError(f"Failed to back up {source}: {exc}") from exc
    logger.info("Backup created path=%s files=%s", target, len(files))
    _prune(source / BACKUP_SUBDIR, keep)
    return str(target)


def _prune(backup_root: Path, keep: int) -> None:
    if keep <= 0:
        return
    snapshots = sorted(p for p in backup_root.iterdir() if p.is_dir())
    for old in snapshots[:-keep]:
        try:
            shutil.rmtree(old)
        except OSError:
            logger.exception("Failed to remove old backup %s", old)
