from __future__ import annotations

from app.services import AccountService, Session
from app.use_cases import (
    AddCategory,
    AddTransaction,
    CalculateBudgetState,
    CalculateByCategories,
    CalculateFinances,
    CreateWallet,
    DeleteTransaction,
    EditTransaction,
    GenerateLedgerReport,
    GetCategories,
    GetWallets,
    ListTransactions,
    RemoveCategory,
    RemoveWallet,
    RenameCategory,
    RenameWallet,
    SetWalletBalance,
    TransferFunds,
    UpdateBudgetLimit,
)
from domain.categories import Category
from domain.reports import CategoryBudget, FinanceSummary
from domain.transactions import Transaction
from domain.users import User
from domain.wallets import Wallet
from infrastructure.repositories import (
    CategoryRepository,
    UserRepository,
    WalletRepository,
)


class FinanceController:
    """Entry point for the console: one method per menu action.

    Every method takes the session explicitly; the controller keeps no
    per-user state.
    """

    def __init__(
        self,
        users: UserRepository,
        wallets: WalletRepository,
        categories: CategoryRepository,
    ) -> None:
        self._users = users
        self._wallets = wallets
        self._categories = categories
        self._accounts = AccountService(users, wallets, categories)

    # Account

    def register(self, username: str, password: str) -> User:
        return self._accounts.register(username.strip(), password)

    def login(self, username: str, password: str) -> Session:
        return self._accounts.authenticate(username.strip(), password)

    def change_password(self, session: Session, old_password: str, new_password: str) -> Session:
        return self._accounts.change_password(session, old_password, new_password)

    def change_username(self, session: Session, new_username: str) -> Session:
        return self._accounts.change_username(session, new_username.strip())

    # Wallets

    def create_wallet(self, session: Session, name: str, initial_balance: str) -> Wallet:
        return CreateWallet(self._wallets).execute(
            owner_id=session.username, name=name, initial_balance=initial_balance
        )

    def remove_wallet(self, session: Session, name: str) -> None:
        RemoveWallet(self._wallets).execute(owner_id=session.username, name=name.strip())

    def rename_wallet(self, session: Session, current_name: str, new_name: str) -> Wallet:
        return RenameWallet(self._wallets).execute(
            owner_id=session.username, current_name=current_name.strip(), new_name=new_name
        )

    def set_wallet_balance(self, session: Session, name: str, new_balance: str) -> Wallet:
        return SetWalletBalance(self._wallets).execute(
            owner_id=session.username, name=name.strip(), new_balance=new_balance
        )

    def load_wallets(self, session: Session) -> list[Wallet]:
        return GetWallets(self._wallets).execute(session.username)

    def transfer(
        self,
        session: Session,
        sender_wallet: str,
        receiver_username: str,
        receiver_wallet: str,
        amount: str,
    ) -> str:
        receiver = receiver_username.strip() or session.username
        return TransferFunds(self._wallets, self._users).execute(
            sender_id=session.username,
            sender_wallet=sender_wallet.strip(),
            receiver_id=receiver,
            receiver_wallet=receiver_wallet.strip(),
            amount=amount,
        )

    def finance_summary(self, session: Session) -> FinanceSummary:
        return CalculateFinances(self._wallets).execute(session.username)

    # Transactions

    def add_transaction(
        self,
        session: Session,
        wallet_name: str,
        amount: str,
        category: str,
        *,
        is_income: bool,
        date: str = "",
    ) -> Transaction:
        return AddTransaction(self._wallets, self._categories).execute(
            owner_id=session.username,
            wallet_name=wallet_name.strip(),
            amount=amount,
            category=category,
            is_income=is_income,
            date=date.strip() or None,
        )

    def edit_transaction(
        self,
        session: Session,
        wallet_name: str,
        transaction_id: str,
        amount: str,
        category: str,
        date: str,
    ) -> Transaction:
        return EditTransaction(self._wallets, self._categories).execute(
            owner_id=session.username,
            wallet_name=wallet_name.strip(),
            transaction_id=transaction_id.strip(),
            new_amount=amount,
            new_category=category,
            new_date=date,
        )

    def delete_transaction(self, session: Session, wallet_name: str, transaction_id: str) -> Transaction:
        return DeleteTransaction(self._wallets).execute(
            owner_id=session.username,
            wallet_name=wallet_name.strip(),
            transaction_id=transaction_id.strip(),
        )

    def list_transactions(self, session: Session, wallet_name: str) -> list[Transaction]:
        return ListTransactions(self._wallets).execute(
            owner_id=session.username, wallet_name=wallet_name.strip()
        )

    def totals_by_category(self, session: Session) -> dict[str, float]:
        return CalculateByCategories(self._wallets).execute(session.username)

    # Categories and budgets

    def add_category(self, session: Session, name: str, budget_limit: str) -> Category:
        return AddCategory(self._categories).execute(
            owner_id=session.username, name=name, budget_limit=budget_limit.strip() or "0"
        )

    def update_budget_limit(self, session: Session, name: str, budget_limit: str) -> Category:
        return UpdateBudgetLimit(self._categories).execute(
            owner_id=session.username, name=name.strip(), budget_limit=budget_limit
        )

    def rename_category(self, session: Session, current_name: str, new_name: str) -> Category:
        return RenameCategory(self._categories, self._wallets).execute(
            owner_id=session.username, current_name=current_name.strip(), new_name=new_name
        )

    def remove_category(self, session: Session, name: str) -> None:
        RemoveCategory(self._categories).execute(owner_id=session.username, name=name.strip())

    def load_categories(self, session: Session) -> list[Category]:
        return GetCategories(self._categories).execute(session.username)

    def budget_state(self, session: Session) -> list[CategoryBudget]:
        return CalculateBudgetState(self._wallets, self._categories).execute(session.username)

    def budget_warnings(self, session: Session) -> list[str]:
        report = GenerateLedgerReport(self._wallets, self._categories).execute(session.username)
        warnings = [
            f"Budget exceeded for '{item.name}': spent {item.spent:.2f} "
            f"of {item.budget_limit:.2f}"
            for item in report.over_budget()
        ]
        if report.finance_summary().expense_exceeds_income:
            warnings.append("Total expenses exceed total income")
        return warnings

    # Tables

    def wallets_table(self, session: Session) -> str:
        return self._report(session).wallets_table()

    def transactions_table(self, session: Session, wallet_name: str | None = None) -> str:
        if wallet_name is not None:
            self.list_transactions(session, wallet_name)
        return self._report(session).transactions_table(
            wallet_name.strip() if wallet_name is not None else None
        )

    def categories_table(self, session: Session) -> str:
        return self._report(session).categories_table()

    def category_totals_table(self, session: Session) -> str:
        return self._report(session).category_totals_table()

    def budget_table(self, session: Session) -> str:
        return self._report(session).budget_table()

    def finance_table(self, session: Session) -> str:
        return self._report(session).finance_table()

    # Export

    def export(self, session: Session, fmt: str, filepath: str) -> int:
        report = self._report(session)
        if fmt == "CSV":
            from utils.csv_utils import export_transactions_to_csv

            return export_transactions_to_csv(report, filepath)
        if fmt == "XLSX":
            from utils.excel_utils import export_ledger_to_xlsx

            return export_ledger_to_xlsx(report, filepath)
        raise ValueError(f"Unsupported format: {fmt}")

    def _report(self, session: Session):
        return GenerateLedgerReport(self._wallets, self._categories).execute(session.username)
