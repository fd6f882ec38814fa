import logging
from datetime import date as dt_date

from domain.categories import Category
from domain.errors import (
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from domain.reports import CategoryBudget, FinanceSummary, LedgerReport
from domain.transactions import TRANSFER_CATEGORY, Transaction, new_transaction_id
from domain.validation import (
    MAX_AMOUNT,
    is_unique,
    parse_amount,
    parse_ymd,
    require_in_range,
    require_name,
)
from domain.wallets import Wallet
from infrastructure.repositories import (
    CategoryRepository,
    UserRepository,
    WalletRepository,
)

logger = logging.getLogger(__name__)


def _wallet_index(wallets: list[Wallet], name: str) -> int:
    for index, wallet in enumerate(wallets):
        if wallet.name == name:
            return index
    raise NotFoundError(f"Wallet '{name}' not found")


def _wallet_by_name(wallets: list[Wallet], name: str) -> Wallet:
    return wallets[_wallet_index(wallets, name)]


def _replace_wallet(wallets: list[Wallet], updated: Wallet, index: int) -> list[Wallet]:
    return wallets[:index] + [updated] + wallets[index + 1 :]


def _wallet_name(value: str) -> str:
    return require_name(value, "Wallet name")


def _balance(value) -> float:
    return require_in_range(parse_amount(value, "Balance"), 0, MAX_AMOUNT, "Balance")


def _budget_limit(value) -> float:
    return require_in_range(parse_amount(value, "Budget limit"), 0, MAX_AMOUNT, "Budget limit")


def _positive_amount(value) -> float:
    amount = parse_amount(value)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return require_in_range(amount, 0, MAX_AMOUNT)


def _signed_amount(value) -> float:
    amount = parse_amount(value)
    if amount == 0:
        raise ValidationError("Amount cannot be zero")
    require_in_range(abs(amount), 0, MAX_AMOUNT)
    return amount


def _resolve_category(categories: CategoryRepository, owner_id: str, name: str) -> str:
    name = require_name(name, "Category name")
    category = categories.find_by_name(owner_id, name)
    if category is None:
        logger.info("Transaction references unknown category owner=%s category=%s", owner_id, name)
        return name
    return category.name


def _require_editable(transaction: Transaction) -> None:
    if transaction.is_transfer:
        raise ValidationError("Transfer-linked transactions cannot be edited or deleted")


class CreateWallet:
    def __init__(self, wallets: WalletRepository):
        self._wallets = wallets

    def execute(self, *, owner_id: str, name: str, initial_balance) -> Wallet:
        name = _wallet_name(name)
        balance = _balance(initial_balance)
        wallets = self._wallets.load_by_owner(owner_id)
        if not is_unique(name, (wallet.name for wallet in wallets)):
            raise ConflictError(f"Wallet '{name}' already exists")
        wallet = Wallet(owner_id=owner_id, name=name, balance=balance)
        self._wallets.save_by_owner(owner_id, wallets + [wallet])
        logger.info("Wallet created owner=%s name=%s balance=%.2f", owner_id, name, balance)
        return wallet


class GetWallets:
    def __init__(self, wallets: WalletRepository):
        self._wallets = wallets

    def execute(self, owner_id: str) -> list[Wallet]:
        return self._wallets.load_by_owner(owner_id)


class RemoveWallet:
    def __init__(self, wallets: WalletRepository):
        self._wallets = wallets

    def execute(self, *, owner_id: str, name: str) -> None:
        wallets = self._wallets.load_by_owner(owner_id)
        index = _wallet_index(wallets, name)
        self._wallets.save_by_owner(owner_id, wallets[:index] + wallets[index + 1 :])
        logger.info("Wallet removed owner=%s name=%s", owner_id, name)


class RenameWallet:
    def __init__(self, wallets: WalletRepository):
        self._wallets = wallets

    def execute(self, *, owner_id: str, current_name: str, new_name: str) -> Wallet:
        new_name = _wallet_name(new_name)
        wallets = self._wallets.load_by_owner(owner_id)
        index = _wallet_index(wallets, current_name)
        if new_name != current_name and any(w.name == new_name for w in wallets):
            raise ConflictError(f"Wallet '{new_name}' already exists")
        renamed = wallets[index].renamed(new_name)
        self._wallets.save_by_owner(owner_id, _replace_wallet(wallets, renamed, index))
        logger.info("Wallet renamed owner=%s old=%s new=%s", owner_id, current_name, new_name)
        return renamed


class SetWalletBalance:
    def __init__(self, wallets: WalletRepository):
        self._wallets = wallets

    def execute(self, *, owner_id: str, name: str, new_balance) -> Wallet:
        balance = _balance(new_balance)
        wallets = self._wallets.load_by_owner(owner_id)
        index = _wallet_index(wallets, name)
        updated = wallets[index].with_balance(balance)
        self._wallets.save_by_owner(owner_id, _replace_wallet(wallets, updated, index))
        logger.info("Wallet balance set owner=%s name=%s balance=%.2f", owner_id, name, balance)
        return updated


class AddTransaction:
    def __init__(self, wallets: WalletRepository, categories: CategoryRepository):
        self._wallets = wallets
        self._categories = categories

    def execute(
        self,
        *,
        owner_id: str,
        wallet_name: str,
        amount,
        category: str,
        is_income: bool,
        date: str | dt_date | None = None,
    ) -> Transaction:
        """Record income (positive) or expense (negative) in a wallet.

        ``amount`` is the magnitude; its sign comes from ``is_income``.
        """
        magnitude = _positive_amount(amount)
        signed = magnitude if is_income else -magnitude
        transaction_date = parse_ymd(date) if date else dt_date.today()
        wallets = self._wallets.load_by_owner(owner_id)
        index = _wallet_index(wallets, wallet_name)
        category_name = _resolve_category(self._categories, owner_id, category)
        transaction = Transaction(amount=signed, category=category_name, date=transaction_date)
        updated = wallets[index].with_transaction(transaction)
        self._wallets.save_by_owner(owner_id, _replace_wallet(wallets, updated, index))
        logger.info(
            "Transaction added owner=%s wallet=%s id=%s amount=%.2f category=%s",
            owner_id,
            wallet_name,
            transaction.id,
            signed,
            category_name,
        )
        return transaction


class EditTransaction:
    def __init__(self, wallets: WalletRepository, categories: CategoryRepository):
        self._wallets = wallets
        self._categories = categories

    def execute(
        self,
        *,
        owner_id: str,
        wallet_name: str,
        transaction_id: str,
        new_amount,
        new_category: str,
        new_date: str | dt_date,
    ) -> Transaction:
        """Replace amount, category and date; the wallet balance moves by new - old."""
        transaction_date = parse_ymd(new_date)
        amount = _signed_amount(new_amount)
        wallets = self._wallets.load_by_owner(owner_id)
        index = _wallet_index(wallets, wallet_name)
        wallet = wallets[index]
        previous = wallet.find_transaction(transaction_id)
        _require_editable(previous)
        category_name = _resolve_category(self._categories, owner_id, new_category)
        edited = previous.edited(amount=amount, category=category_name, date=transaction_date)
        updated = wallet.with_replaced_transaction(edited)
        self._wallets.save_by_owner(owner_id, _replace_wallet(wallets, updated, index))
        logger.info(
            "Transaction edited owner=%s wallet=%s id=%s old_amount=%.2f new_amount=%.2f",
            owner_id,
            wallet_name,
            transaction_id,
            previous.amount,
            amount,
        )
        return edited


class DeleteTransaction:
    def __init__(self, wallets: WalletRepository):
        self._wallets = wallets

    def execute(self, *, owner_id: str, wallet_name: str, transaction_id: str) -> Transaction:
        wallets = self._wallets.load_by_owner(owner_id)
        index = _wallet_index(wallets, wallet_name)
        wallet = wallets[index]
        removed = wallet.find_transaction(transaction_id)
        _require_editable(removed)
        updated = wallet.without_transaction(transaction_id)
        self._wallets.save_by_owner(owner_id, _replace_wallet(wallets, updated, index))
        logger.info(
            "Transaction deleted owner=%s wallet=%s id=%s amount=%.2f",
            owner_id,
            wallet_name,
            transaction_id,
            removed.amount,
        )
        return removed


class ListTransactions:
    def __init__(self, wallets: WalletRepository):
        self._wallets = wallets

    def execute(self, *, owner_id: str, wallet_name: str) -> list[Transaction]:
        wallet = _wallet_by_name(self._wallets.load_by_owner(owner_id), wallet_name)
        return list(wallet.transactions)


class TransferFunds:
    def __init__(self, wallets: WalletRepository, users: UserRepository):
        self._wallets = wallets
        self._users = users

    def execute(
        self,
        *,
        sender_id: str,
        sender_wallet: str,
        receiver_id: str,
        receiver_wallet: str,
        amount,
        date: str | dt_date | None = None,
    ) -> str:
        """Move ``amount`` between two wallets, possibly of different owners.

        Both wallets get a transaction sharing one transfer id. Between two
        owners the wallet files are written one after another; if the second
        write fails the sender file is restored and PersistenceError raised.
        """
        amount = _positive_amount(amount)
        if sender_id == receiver_id and sender_wallet == receiver_wallet:
            raise ValidationError("Transfer wallets must be different")
        if self._users.find_by_username(receiver_id) is None:
            raise NotFoundError(f"User '{receiver_id}' not found")
        transfer_date = parse_ymd(date) if date else dt_date.today()

        sender_wallets = self._wallets.load_by_owner(sender_id)
        sender_index = _wallet_index(sender_wallets, sender_wallet)
        same_owner = sender_id == receiver_id
        receiver_wallets = (
            sender_wallets if same_owner else self._wallets.load_by_owner(receiver_id)
        )
        receiver_index = _wallet_index(receiver_wallets, receiver_wallet)

        source = sender_wallets[sender_index]
        if source.balance < amount:
            raise InsufficientFundsError(
                f"Insufficient funds in wallet '{sender_wallet}': "
                f"balance {source.balance:.2f}, requested {amount:.2f}"
            )

        transfer_id = new_transaction_id()
        debit = Transaction(
            amount=-amount, category=TRANSFER_CATEGORY, date=transfer_date, transfer_id=transfer_id
        )
        credit = Transaction(
            amount=amount, category=TRANSFER_CATEGORY, date=transfer_date, transfer_id=transfer_id
        )
        updated_sender = _replace_wallet(
            sender_wallets, source.with_transaction(debit), sender_index
        )

        if same_owner:
            target = updated_sender[receiver_index]
            self._wallets.save_by_owner(
                sender_id,
                _replace_wallet(updated_sender, target.with_transaction(credit), receiver_index),
            )
        else:
            target = receiver_wallets[receiver_index]
            updated_receiver = _replace_wallet(
                receiver_wallets, target.with_transaction(credit), receiver_index
            )
            self._wallets.save_by_owner(sender_id, updated_sender)
            try:
                self._wallets.save_by_owner(receiver_id, updated_receiver)
            except PersistenceError:
                logger.exception(
                    "Transfer credit failed transfer_id=%s, restoring sender wallets", transfer_id
                )
                self._wallets.save_by_owner(sender_id, sender_wallets)
                raise

        logger.info(
            "Transfer completed transfer_id=%s from=%s/%s to=%s/%s amount=%.2f",
            transfer_id,
            sender_id,
            sender_wallet,
            receiver_id,
            receiver_wallet,
            amount,
        )
        return transfer_id


class AddCategory:
    def __init__(self, categories: CategoryRepository):
        self._categories = categories

    def execute(self, *, owner_id: str, name: str, budget_limit=0.0) -> Category:
        name = require_name(name, "Category name")
        limit = _budget_limit(budget_limit)
        owned = self._categories.load_by_owner(owner_id)
        if any(category.matches(name) for category in owned):
            raise ConflictError(f"Category '{name}' already exists")
        category = Category(owner_id=owner_id, name=name, budget_limit=limit)
        self._categories.save_for_owner(owner_id, owned + [category])
        logger.info("Category added owner=%s name=%s limit=%.2f", owner_id, name, limit)
        return category


class GetCategories:
    def __init__(self, categories: CategoryRepository):
        self._categories = categories

    def execute(self, owner_id: str) -> list[Category]:
        return self._categories.load_by_owner(owner_id)


def _category_index(categories: list[Category], name: str) -> int:
    for index, category in enumerate(categories):
        if category.matches(name):
            return index
    raise NotFoundError(f"Category '{name}' not found")


class UpdateBudgetLimit:
    def __init__(self, categories: CategoryRepository):
        self._categories = categories

    def execute(self, *, owner_id: str, name: str, budget_limit) -> Category:
        limit = _budget_limit(budget_limit)
        owned = self._categories.load_by_owner(owner_id)
        index = _category_index(owned, name)
        updated = owned[index].with_limit(limit)
        self._categories.save_for_owner(owner_id, owned[:index] + [updated] + owned[index + 1 :])
        logger.info("Budget limit updated owner=%s name=%s limit=%.2f", owner_id, updated.name, limit)
        return updated


class RenameCategory:
    def __init__(self, categories: CategoryRepository, wallets: WalletRepository):
        self._categories = categories
        self._wallets = wallets

    def execute(self, *, owner_id: str, current_name: str, new_name: str) -> Category:
        """Rename a category and the category name on the owner's transactions."""
        new_name = require_name(new_name, "Category name")
        owned = self._categories.load_by_owner(owner_id)
        index = _category_index(owned, current_name)
        previous = owned[index]
        if any(c.matches(new_name) for i, c in enumerate(owned) if i != index):
            raise ConflictError(f"Category '{new_name}' already exists")
        renamed = previous.renamed(new_name)
        wallets = self._wallets.load_by_owner(owner_id)

        self._categories.save_for_owner(owner_id, owned[:index] + [renamed] + owned[index + 1 :])
        try:
            self._wallets.save_by_owner(
                owner_id, [w.with_category_renamed(previous.name, new_name) for w in wallets]
            )
        except PersistenceError:
            logger.exception("Category rename failed on wallets, restoring categories")
            self._categories.save_for_owner(owner_id, owned)
            raise
        logger.info(
            "Category renamed owner=%s old=%s new=%s", owner_id, previous.name, new_name
        )
        return renamed


class RemoveCategory:
    def __init__(self, categories: CategoryRepository):
        self._categories = categories

    def execute(self, *, owner_id: str, name: str) -> None:
        """Drop the category record; transactions keep referencing the name."""
        owned = self._categories.load_by_owner(owner_id)
        index = _category_index(owned, name)
        self._categories.save_for_owner(owner_id, owned[:index] + owned[index + 1 :])
        logger.info("Category removed owner=%s name=%s", owner_id, owned[index].name)


class GenerateLedgerReport:
    def __init__(self, wallets: WalletRepository, categories: CategoryRepository):
        self._wallets = wallets
        self._categories = categories

    def execute(self, owner_id: str) -> LedgerReport:
        return LedgerReport(
            self._wallets.load_by_owner(owner_id),
            self._categories.load_by_owner(owner_id),
        )


class CalculateByCategories:
    def __init__(self, wallets: WalletRepository):
        self._wallets = wallets

    def execute(self, owner_id: str) -> dict[str, float]:
        return LedgerReport(self._wallets.load_by_owner(owner_id)).totals_by_category()


class CalculateBudgetState:
    def __init__(self, wallets: WalletRepository, categories: CategoryRepository):
        self._wallets = wallets
        self._categories = categories

    def execute(self, owner_id: str) -> list[CategoryBudget]:
        return GenerateLedgerReport(self._wallets, self._categories).execute(owner_id).budget_state()


class CalculateFinances:
    def __init__(self, wallets: WalletRepository):
        self._wallets = wallets

    def execute(self, owner_id: str) -> FinanceSummary:
        return LedgerReport(self._wallets.load_by_owner(owner_id)).finance_summary()
