import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import date as dt_date

from domain.categories import Category
from domain.errors import PersistenceError
from domain.transactions import Transaction
from domain.users import User
from domain.wallets import Wallet

logger = logging.getLogger(__name__)


class UserRepository(ABC):
    @abstractmethod
    def load_all(self) -> list[User]:
        """Load every registered user. Never returns None."""
        pass

    @abstractmethod
    def save_all(self, users: list[User]) -> None:
        """Overwrite the whole user collection."""
        pass

    def find_by_username(self, username: str) -> User | None:
        return next((user for user in self.load_all() if user.username == username), None)


class WalletRepository(ABC):
    @abstractmethod
    def load_by_owner(self, owner_id: str) -> list[Wallet]:
        """Load the wallet collection of one owner. Never returns None."""
        pass

    @abstractmethod
    def save_by_owner(self, owner_id: str, wallets: list[Wallet]) -> None:
        """Overwrite the wallet collection of one owner."""
        pass

    @abstractmethod
    def delete_owner(self, owner_id: str) -> None:
        """Drop the wallet collection of one owner."""
        pass


class CategoryRepository(ABC):
    @abstractmethod
    def load_all(self) -> list[Category]:
        """Load the categories of every owner. Never returns None."""
        pass

    @abstractmethod
    def save_all(self, categories: list[Category]) -> None:
        """Overwrite the whole category collection."""
        pass

    def load_by_owner(self, owner_id: str) -> list[Category]:
        return [category for category in self.load_all() if category.owner_id == owner_id]

    def save_for_owner(self, owner_id: str, categories: list[Category]) -> None:
        """Replace one owner's subset, keeping the other owners' categories."""
        others = [category for category in self.load_all() if category.owner_id != owner_id]
        self.save_all(others + [category.with_owner(owner_id) for category in categories])

    def find_by_name(self, owner_id: str, name: str) -> Category | None:
        return next(
            (category for category in self.load_by_owner(owner_id) if category.matches(name)),
            None,
        )


class JsonFileStore:
    """Whole-file JSON list storage.

    Reads degrade to an empty list when the file is absent or unreadable.
    Writes go through a temporary file in the same directory and replace the
    target in one step; any failure is raised as PersistenceError.
    """

    _path_locks: dict[str, threading.RLock] = {}
    _path_locks_guard = threading.Lock()

    def __init__(self, file_path: str):
        self._file_path = str(file_path)
        abs_path = os.path.abspath(self._file_path)
        with self._path_locks_guard:
            if abs_path not in self._path_locks:
                self._path_locks[abs_path] = threading.RLock()
            self._lock = self._path_locks[abs_path]

    @property
    def file_path(self) -> str:
        return self._file_path

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def read_items(self) -> list[dict]:
        with self._lock:
            try:
                with open(self._file_path, encoding="utf-8") as f:
                    raw = f.read()
            except FileNotFoundError:
                return []
            except (OSError, UnicodeDecodeError):
                logger.warning("Failed to read %s, using empty collection", self._file_path)
                return []
        if not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON in %s, using empty collection", self._file_path)
            return []
        if not isinstance(data, list):
            logger.warning("Unexpected JSON root in %s, using empty collection", self._file_path)
            return []
        items: list[dict] = []
        for index, item in enumerate(data):
            if not isinstance(item, dict):
                logger.warning("Skipping non-dict item at index %s in %s", index, self._file_path)
                continue
            items.append(item)
        return items

    def write_items(self, items: list[dict]) -> None:
        with self._lock:
            directory = os.path.dirname(self._file_path) or "."
            tmp_path = None
            try:
                os.makedirs(directory, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(prefix=".store_", suffix=".json", dir=directory)
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(items, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self._file_path)
            except OSError as exc:
                raise PersistenceError(f"Failed to save {self._file_path}: {exc}") from exc
            finally:
                try:
                    if tmp_path is not None and os.path.exists(tmp_path):
                        os.remove(tmp_path)
                except OSError:
                    logger.exception("Failed to cleanup temporary file during save: %s", tmp_path)

    def delete(self) -> None:
        with self._lock:
            try:
                os.remove(self._file_path)
            except FileNotFoundError:
                return
            except OSError as exc:
                raise PersistenceError(f"Failed to delete {self._file_path}: {exc}") from exc


def _as_float(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class JsonUserRepository(UserRepository):
    def __init__(self, file_path: str = "users.json"):
        self._store = JsonFileStore(file_path)

    def load_all(self) -> list[User]:
        users: list[User] = []
        for index, item in enumerate(self._store.read_items()):
            username = str(item.get("username", "") or "").strip()
            if not username:
                logger.warning("Skipping user without username at index %s", index)
                continue
            users.append(User(username=username, password=str(item.get("password", "") or "")))
        return users

    def save_all(self, users: list[User]) -> None:
        self._store.write_items(
            [{"username": user.username, "password": user.password} for user in users]
        )


class JsonCategoryRepository(CategoryRepository):
    def __init__(self, file_path: str = "categories.json"):
        self._store = JsonFileStore(file_path)

    def load_all(self) -> list[Category]:
        categories: list[Category] = []
        for index, item in enumerate(self._store.read_items()):
            try:
                categories.append(
                    Category(
                        owner_id=str(item.get("userId", "") or ""),
                        name=str(item.get("name", "") or "").strip(),
                        budget_limit=_as_float(item.get("budgetLimit"), 0.0),
                    )
                )
            except ValueError:
                logger.exception("Skipping invalid category at index %s", index)
        return [category for category in categories if category.owner_id and category.name]

    def save_all(self, categories: list[Category]) -> None:
        self._store.write_items(
            [
                {
                    "userId": category.owner_id,
                    "name": category.name,
                    "budgetLimit": float(category.budget_limit),
                }
                for category in categories
            ]
        )

    def save_for_owner(self, owner_id: str, categories: list[Category]) -> None:
        with self._store.lock:
            super().save_for_owner(owner_id, categories)


class JsonWalletRepository(WalletRepository):
    """One JSON file per owner: ``<directory>/wallets_<owner_id>.json``.

    When a category repository is given, each stored transaction carries a
    snapshot of its category's budget limit next to the category name.
    """

    FILE_TEMPLATE = "wallets_{owner_id}.json"

    def __init__(
        self,
        directory: str = "wallets",
        category_repository: CategoryRepository | None = None,
    ):
        self._directory = str(directory)
        self._categories = category_repository

    def _store(self, owner_id: str) -> JsonFileStore:
        return JsonFileStore(
            os.path.join(self._directory, self.FILE_TEMPLATE.format(owner_id=owner_id))
        )

    @staticmethod
    def _transaction_from_dict(item: dict) -> Transaction:
        category = item.get("category", "")
        if isinstance(category, dict):
            category = category.get("name", "")
        transfer_id = item.get("transferId")
        return Transaction(
            id=str(item.get("id", "") or ""),
            amount=_as_float(item.get("amount"), 0.0),
            category=str(category or ""),
            date=str(item.get("date", "") or ""),
            transfer_id=str(transfer_id) if transfer_id not in (None, "") else None,
        )

    @staticmethod
    def _transaction_to_dict(transaction: Transaction, limits: dict[str, float]) -> dict:
        payload = {
            "id": transaction.id,
            "amount": float(transaction.amount),
            "category": {
                "name": transaction.category,
                "budgetLimit": float(limits.get(transaction.category.casefold(), 0.0)),
            },
            "date": transaction.date.isoformat()
            if isinstance(transaction.date, dt_date)
            else transaction.date,
        }
        if transaction.transfer_id is not None:
            payload["transferId"] = transaction.transfer_id
        return payload

    def load_by_owner(self, owner_id: str) -> list[Wallet]:
        wallets: list[Wallet] = []
        for index, item in enumerate(self._store(owner_id).read_items()):
            name = str(item.get("name", "") or "").strip()
            if not name:
                logger.warning("Skipping wallet without name at index %s", index)
                continue
            transactions: list[Transaction] = []
            raw_transactions = item.get("transactions") or []
            if not isinstance(raw_transactions, list):
                logger.warning("Wallet '%s' has malformed transactions, ignoring them", name)
                raw_transactions = []
            for tx_index, raw in enumerate(raw_transactions):
                if not isinstance(raw, dict):
                    logger.warning("Skipping non-dict transaction %s in wallet '%s'", tx_index, name)
                    continue
                try:
                    transactions.append(self._transaction_from_dict(raw))
                except ValueError:
                    logger.exception("Skipping invalid transaction %s in wallet '%s'", tx_index, name)
            wallets.append(
                Wallet(
                    owner_id=owner_id,
                    name=name,
                    balance=_as_float(item.get("balance"), 0.0),
                    transactions=tuple(transactions),
                )
            )
        return wallets

    def save_by_owner(self, owner_id: str, wallets: list[Wallet]) -> None:
        limits: dict[str, float] = {}
        if self._categories is not None:
            limits = {c.key: c.budget_limit for c in self._categories.load_by_owner(owner_id)}
        self._store(owner_id).write_items(
            [
                {
                    "ownerId": owner_id,
                    "name": wallet.name,
                    "balance": float(wallet.balance),
                    "transactions": [
                        self._transaction_to_dict(transaction, limits)
                        for transaction in wallet.transactions
                    ],
                }
                for wallet in wallets
            ]
        )

    def delete_owner(self, owner_id: str) -> None:
        self._store(owner_id).delete()
