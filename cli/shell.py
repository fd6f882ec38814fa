from __future__ import annotations

import logging
from collections.abc import Callable

from app.services import Session
from cli.controllers import FinanceController
from domain.errors import DomainError

logger = logging.getLogger(__name__)

EXPORT_FORMATS = {"1": "CSV", "2": "XLSX"}


class ConsoleShell:
    """Numbered-menu console over ``FinanceController``.

    ``input_func`` and ``output`` default to the builtin ``input`` and ``print``.
    """

    def __init__(
        self,
        controller: FinanceController,
        input_func: Callable[[str], str] | None = None,
        output: Callable[[str], None] | None = None,
    ) -> None:
        self._controller = controller
        self._input = input_func or input
        self._output = output or print
        self._session: Session | None = None

    # Plumbing

    def _ask(self, prompt: str) -> str:
        return self._input(f"{prompt}: ").strip()

    def _ask_raw(self, prompt: str) -> str:
        return self._input(f"{prompt}: ")

    def _say(self, text: str = "") -> None:
        self._output(text)

    def _menu(self, title: str, options: list[tuple[str, Callable[[], None]]]) -> None:
        """Show ``options`` until the user picks "Back" (always the last number)."""
        while True:
            self._say(f"\n== {title} ==")
            for number, (label, _) in enumerate(options, start=1):
                self._say(f"{number}. {label}")
            back = str(len(options) + 1)
            self._say(f"{back}. Back")
            choice = self._ask("Choose")
            if choice == back:
                return
            if not choice.isdigit() or not 1 <= int(choice) <= len(options):
                self._say("Unknown option")
                continue
            self._run(options[int(choice) - 1][1])

    def _run(self, action: Callable[[], None]) -> None:
        try:
            action()
        except DomainError as exc:
            logger.info("Action failed: %s", exc)
            self._say(f"Error: {exc}")

    def _warn(self) -> None:
        for warning in self._controller.budget_warnings(self._require_session()):
            self._say(f"Warning: {warning}")

    def _require_session(self) -> Session:
        if self._session is None:
            raise RuntimeError("No user is logged in")
        return self._session

    # Entry

    def run(self) -> int:
        self._say("Personal finance ledger")
        try:
            while True:
                self._say("\n1. Login\n2. Register\n3. Exit")
                choice = self._ask("Choose")
                if choice == "1":
                    self._run(self._login)
                elif choice == "2":
                    self._run(self._register)
                elif choice == "3":
                    break
                else:
                    self._say("Unknown option")
                    continue
                if self._session is not None:
                    self._main_menu()
        except (EOFError, KeyboardInterrupt):
            self._say("")
            logger.info("Input closed, leaving the shell")
        self._say("Goodbye")
        return 0

    def _login(self) -> None:
        username = self._ask("Login")
        password = self._ask_raw("Password")
        self._session = self._controller.login(username, password)
        self._say(f"Welcome, {self._session.username}")

    def _register(self) -> None:
        username = self._ask("Login")
        password = self._ask_raw("Password")
        user = self._controller.register(username, password)
        self._say(f"User '{user.username}' registered, you can log in now")

    def _main_menu(self) -> None:
        options = {
            "1": self._wallets_menu,
            "2": self._categories_menu,
            "3": self._transactions_menu,
            "4": self._account_menu,
            "5": self._export_menu,
        }
        while self._session is not None:
            self._say(f"\n== {self._session.username} ==")
            self._say(
                "1. Wallets\n2. Categories and budgets\n3. Transactions\n"
                "4. Account\n5. Export\n6. Logout"
            )
            choice = self._ask("Choose")
            if choice == "6":
                logger.info("User logged out username=%s", self._session.username)
                self._session = None
                return
            handler = options.get(choice)
            if handler is None:
                self._say("Unknown option")
                continue
            handler()

    # Wallets

    def _wallets_menu(self) -> None:
        self._menu(
            "Wallets",
            [
                ("Add wallet", self._add_wallet),
                ("Remove wallet", self._remove_wallet),
                ("Rename wallet", self._rename_wallet),
                ("Set balance", self._set_balance),
                ("List wallets", self._list_wallets),
                ("Transfer", self._transfer),
                ("Income and expense totals", self._finance_totals),
            ],
        )

    def _add_wallet(self) -> None:
        session = self._require_session()
        name = self._ask("Wallet name")
        balance = self._ask("Initial balance")
        wallet = self._controller.create_wallet(session, name, balance)
        self._say(f"Wallet '{wallet.name}' created with balance {wallet.balance:.2f}")

    def _remove_wallet(self) -> None:
        session = self._require_session()
        name = self._ask("Wallet name")
        self._controller.remove_wallet(session, name)
        self._say(f"Wallet '{name}' removed")

    def _rename_wallet(self) -> None:
        session = self._require_session()
        current = self._ask("Current name")
        new_name = self._ask("New name")
        wallet = self._controller.rename_wallet(session, current, new_name)
        self._say(f"Wallet renamed to '{wallet.name}'")

    def _set_balance(self) -> None:
        session = self._require_session()
        name = self._ask("Wallet name")
        balance = self._ask("New balance")
        wallet = self._controller.set_wallet_balance(session, name, balance)
        self._say(f"Wallet '{wallet.name}' balance is now {wallet.balance:.2f}")

    def _list_wallets(self) -> None:
        self._say(self._controller.wallets_table(self._require_session()))

    def _transfer(self) -> None:
        session = self._require_session()
        sender = self._ask("From wallet")
        receiver_user = self._ask(f"Recipient login (empty for {session.username})")
        receiver_wallet = self._ask("To wallet")
        amount = self._ask("Amount")
        transfer_id = self._controller.transfer(session, sender, receiver_user, receiver_wallet, amount)
        self._say(f"Transfer completed, id {transfer_id}")

    def _finance_totals(self) -> None:
        session = self._require_session()
        self._say(self._controller.finance_table(session))
        if self._controller.finance_summary(session).expense_exceeds_income:
            self._say("Warning: Total expenses exceed total income")

    # Categories

    def _categories_menu(self) -> None:
        self._menu(
            "Categories and budgets",
            [
                ("Add category", self._add_category),
                ("Update budget limit", self._update_limit),
                ("Rename category", self._rename_category),
                ("Remove category", self._remove_category),
                ("List categories", self._list_categories),
                ("Budget state", self._budget_state),
            ],
        )

    def _add_category(self) -> None:
        session = self._require_session()
        name = self._ask("Category name")
        limit = self._ask("Budget limit (0 or empty for no limit)")
        category = self._controller.add_category(session, name, limit)
        self._say(f"Category '{category.name}' added")

    def _update_limit(self) -> None:
        session = self._require_session()
        name = self._ask("Category name")
        limit = self._ask("New budget limit")
        category = self._controller.update_budget_limit(session, name, limit)
        self._say(f"Budget limit of '{category.name}' set to {category.budget_limit:.2f}")
        self._warn()

    def _rename_category(self) -> None:
        session = self._require_session()
        current = self._ask("Current name")
        new_name = self._ask("New name")
        category = self._controller.rename_category(session, current, new_name)
        self._say(f"Category renamed to '{category.name}'")

    def _remove_category(self) -> None:
        session = self._require_session()
        name = self._ask("Category name")
        self._controller.remove_category(session, name)
        self._say(f"Category '{name}' removed")

    def _list_categories(self) -> None:
        self._say(self._controller.categories_table(self._require_session()))

    def _budget_state(self) -> None:
        self._say(self._controller.budget_table(self._require_session()))

    # Transactions

    def _transactions_menu(self) -> None:
        self._menu(
            "Transactions",
            [
                ("Add income", lambda: self._add_transaction(is_income=True)),
                ("Add expense", lambda: self._add_transaction(is_income=False)),
                ("Edit transaction", self._edit_transaction),
                ("Delete transaction", self._delete_transaction),
                ("List transactions", self._list_transactions),
                ("Sum by category", self._sum_by_category),
            ],
        )

    def _add_transaction(self, *, is_income: bool) -> None:
        session = self._require_session()
        wallet = self._ask("Wallet name")
        amount = self._ask("Amount")
        category = self._ask("Category")
        date = self._ask("Date YYYY-MM-DD (empty for today)")
        transaction = self._controller.add_transaction(
            session, wallet, amount, category, is_income=is_income, date=date
        )
        self._say(f"{transaction.type.capitalize()} recorded, id {transaction.id}")
        self._warn()

    def _edit_transaction(self) -> None:
        session = self._require_session()
        wallet = self._ask("Wallet name")
        transaction_id = self._ask("Transaction id")
        amount = self._ask("New amount (negative for expense)")
        category = self._ask("New category")
        date = self._ask("New date YYYY-MM-DD")
        self._controller.edit_transaction(session, wallet, transaction_id, amount, category, date)
        self._say("Transaction updated")
        self._warn()

    def _delete_transaction(self) -> None:
        session = self._require_session()
        wallet = self._ask("Wallet name")
        transaction_id = self._ask("Transaction id")
        self._controller.delete_transaction(session, wallet, transaction_id)
        self._say("Transaction deleted")

    def _list_transactions(self) -> None:
        session = self._require_session()
        wallet = self._ask("Wallet name (empty for all)")
        self._say(self._controller.transactions_table(session, wallet or None))

    def _sum_by_category(self) -> None:
        self._say(self._controller.category_totals_table(self._require_session()))

    # Account

    def _account_menu(self) -> None:
        self._menu(
            "Account",
            [
                ("Change password", self._change_password),
                ("Change login", self._change_username),
            ],
        )

    def _change_password(self) -> None:
        session = self._require_session()
        old = self._ask_raw("Current password")
        new = self._ask_raw("New password")
        self._controller.change_password(session, old, new)
        self._say("Password changed")

    def _change_username(self) -> None:
        session = self._require_session()
        new_username = self._ask("New login")
        self._session = self._controller.change_username(session, new_username)
        self._say(f"Login changed to '{self._session.username}'")

    # Export

    def _export_menu(self) -> None:
        self._menu(
            "Export",
            [
                ("CSV", lambda: self._export("1")),
                ("XLSX", lambda: self._export("2")),
            ],
        )

    def _export(self, choice: str) -> None:
        session = self._require_session()
        fmt = EXPORT_FORMATS[choice]
        path = self._ask("File path")
        if not path:
            self._say("Export cancelled")
            return
        count = self._controller.export(session, fmt, path)
        self._say(f"Exported {count} transactions to {path}")
