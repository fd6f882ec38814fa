import os
from pathlib import Path

import domain.validation as _validation

PROJECT_ROOT = Path(__file__).resolve().parent

DATA_DIR = Path(os.environ.get("FINANCE_DATA_DIR") or PROJECT_ROOT / "data")
USERS_FILE = "users.json"
CATEGORIES_FILE = "categories.json"
WALLETS_SUBDIR = "wallets"
LOG_FILE = "finance.log"

USERS_PATH = str(DATA_DIR / USERS_FILE)
CATEGORIES_PATH = str(DATA_DIR / CATEGORIES_FILE)
WALLETS_DIR = str(DATA_DIR / WALLETS_SUBDIR)
LOG_PATH = str(DATA_DIR / LOG_FILE)

BACKUP_ON_START = True
BACKUP_KEEP = 10

MAX_NAME_LENGTH = _validation.MAX_NAME_LENGTH
MAX_AMOUNT = _validation.MAX_AMOUNT
