from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from config import CATEGORIES_FILE, DATA_DIR, USERS_FILE, WALLETS_SUBDIR
from cli.controllers import FinanceController
from infrastructure.repositories import (
    JsonCategoryRepository,
    JsonUserRepository,
    JsonWalletRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Application:
    users: JsonUserRepository
    wallets: JsonWalletRepository
    categories: JsonCategoryRepository
    controller: FinanceController


def build_application(data_dir: str | Path = DATA_DIR) -> Application:
    """Create the data directories and wire repositories into the controller."""
    root = Path(data_dir)
    wallets_dir = root / WALLETS_SUBDIR
    wallets_dir.mkdir(parents=True, exist_ok=True)

    users = JsonUserRepository(str(root / USERS_FILE))
    categories = JsonCategoryRepository(str(root / CATEGORIES_FILE))
    wallets = JsonWalletRepository(str(wallets_dir), category_repository=categories)
    logger.info("Storage ready data_dir=%s", root)
    return Application(
        users=users,
        wallets=wallets,
        categories=categories,
        controller=FinanceController(users, wallets, categories),
    )
