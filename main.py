from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from config import BACKUP_ON_START, DATA_DIR, LOG_FILE

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Personal finance console ledger")
    parser.add_argument(
        "--data-dir",
        default=str(DATA_DIR),
        help="directory holding users.json, categories.json and wallets/",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument(
        "--no-backup",
        action="store_true",
        help="skip the data snapshot taken at start-up",
    )
    return parser.parse_args(argv)


def configure_logging(data_dir: Path, level: str) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(data_dir / LOG_FILE),
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    from backup import create_backup
    from bootstrap import build_application
    from cli.shell import ConsoleShell
    from domain.errors import PersistenceError

    args = parse_args(argv)
    data_dir = Path(args.data_dir)
    configure_logging(data_dir, args.log_level)
    logger.info("Starting data_dir=%s", data_dir)

    if BACKUP_ON_START and not args.no_backup:
        try:
            create_backup(data_dir)
        except PersistenceError:
            logger.exception("Start-up backup failed, continuing without it")

    app = build_application(data_dir)
    return ConsoleShell(app.controller).run()


if __name__ == "__main__":
    sys.exit(main())
