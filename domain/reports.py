from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date as dt_date

from prettytable import PrettyTable

from .categories import Category
from .transactions import Transaction
from .wallets import Wallet


@dataclass(frozen=True)
class CategoryBudget:
    """Spend-vs-limit state of one category.

    A limit of 0 means the category is unlimited: ``remaining`` is ``None``
    and the category is never reported as over budget.
    """

    name: str
    budget_limit: float
    spent: float

    @property
    def is_limited(self) -> bool:
        return self.budget_limit > 0

    @property
    def remaining(self) -> float | None:
        if not self.is_limited:
            return None
        return round(self.budget_limit - self.spent, 2)

    @property
    def is_over_budget(self) -> bool:
        return self.is_limited and self.spent > self.budget_limit


@dataclass(frozen=True)
class FinanceSummary:
    total_income: float
    total_expenses: float

    @property
    def net(self) -> float:
        return round(self.total_income - self.total_expenses, 2)

    @property
    def expense_exceeds_income(self) -> bool:
        return self.total_expenses > self.total_income


def _money(value: float) -> str:
    return f"{value:.2f}" if value >= 0 else f"({abs(value):.2f})"


class LedgerReport:
    """Read-side aggregation over one owner's wallets and categories.

    Every figure is computed by scanning the full transaction set; transfer
    legs only move money between wallets and are left out of income, expense
    and category totals.
    """

    def __init__(self, wallets: Iterable[Wallet], categories: Iterable[Category] = ()):
        self._wallets = list(wallets)
        self._categories = list(categories)

    def wallets(self) -> list[Wallet]:
        return list(self._wallets)

    def categories(self) -> list[Category]:
        return list(self._categories)

    def transactions(self) -> list[tuple[Wallet, Transaction]]:
        return [(wallet, t) for wallet in self._wallets for t in wallet.transactions]

    def _profit_transactions(self) -> list[Transaction]:
        return [t for _, t in self.transactions() if not t.is_transfer]

    def totals_by_category(self) -> dict[str, float]:
        """Signed sum per category, names matched case-insensitively.

        Each total is labelled with the category record's name, or with the
        first spelling seen when no record exists.
        """
        labels = {category.key: category.name for category in self._categories}
        sums: dict[str, float] = {}
        for transaction in self._profit_transactions():
            key = transaction.category.casefold()
            labels.setdefault(key, transaction.category)
            sums[key] = round(sums.get(key, 0.0) + transaction.amount, 2)
        return {labels[key]: total for key, total in sums.items()}

    def budget_state(self) -> list[CategoryBudget]:
        sums: dict[str, float] = {}
        for transaction in self._profit_transactions():
            key = transaction.category.casefold()
            sums[key] = sums.get(key, 0.0) + transaction.amount
        return [
            CategoryBudget(
                name=category.name,
                budget_limit=category.budget_limit,
                spent=round(abs(sums.get(category.key, 0.0)), 2),
            )
            for category in self._categories
        ]

    def over_budget(self) -> list[CategoryBudget]:
        return [item for item in self.budget_state() if item.is_over_budget]

    def finance_summary(self) -> FinanceSummary:
        income = 0.0
        expenses = 0.0
        for transaction in self._profit_transactions():
            if transaction.amount > 0:
                income += transaction.amount
            else:
                expenses += abs(transaction.amount)
        return FinanceSummary(total_income=round(income, 2), total_expenses=round(expenses, 2))

    def unknown_categories(self) -> set[str]:
        known = {category.key for category in self._categories}
        return {
            t.category
            for t in self._profit_transactions()
            if t.category.casefold() not in known
        }

    def wallets_table(self) -> str:
        table = PrettyTable()
        table.field_names = ["Wallet", "Transactions", "Balance"]
        total = 0.0
        for wallet in self._wallets:
            total += wallet.balance
            table.add_row([wallet.name, len(wallet.transactions), _money(wallet.balance)])
        table.add_row(["TOTAL", "", _money(total)], divider=True)
        return str(table)

    def transactions_table(self, wallet_name: str | None = None) -> str:
        table = PrettyTable()
        table.field_names = ["Date", "Wallet", "Type", "Category", "Amount", "ID"]
        unknown = self.unknown_categories()
        rows = [
            (wallet, t)
            for wallet, t in self.transactions()
            if wallet_name is None or wallet.name == wallet_name
        ]
        for wallet, transaction in sorted(rows, key=lambda item: item[1].date):
            category = transaction.category
            if category in unknown:
                category = f"{category} (no category record)"
            kind = "Transfer" if transaction.is_transfer else transaction.type.capitalize()
            table.add_row(
                [
                    transaction.date.isoformat()
                    if isinstance(transaction.date, dt_date)
                    else transaction.date,
                    wallet.name,
                    kind,
                    category,
                    _money(transaction.amount),
                    transaction.id,
                ]
            )
        return str(table)

    def categories_table(self) -> str:
        table = PrettyTable()
        table.field_names = ["Category", "Budget limit"]
        for category in self._categories:
            limit = _money(category.budget_limit) if category.has_limit else "no limit"
            table.add_row([category.name, limit])
        return str(table)

    def category_totals_table(self) -> str:
        table = PrettyTable()
        table.field_names = ["Category", "Net amount"]
        totals = self.totals_by_category()
        for name in sorted(totals):
            table.add_row([name, _money(totals[name])])
        table.add_row(["TOTAL", _money(round(sum(totals.values()), 2))], divider=True)
        return str(table)

    def budget_table(self) -> str:
        table = PrettyTable()
        table.field_names = ["Category", "Limit", "Spent", "Remaining"]
        for item in self.budget_state():
            if item.is_limited:
                limit = _money(item.budget_limit)
                remaining = _money(item.remaining)
                if item.is_over_budget:
                    remaining += " OVER"
            else:
                limit = "no limit"
                remaining = "unlimited"
            table.add_row([item.name, limit, _money(item.spent), remaining])
        return str(table)

    def finance_table(self) -> str:
        summary = self.finance_summary()
        table = PrettyTable()
        table.field_names = ["Total income", "Total expenses", "Net"]
        table.add_row(
            [
                _money(summary.total_income),
                _money(summary.total_expenses),
                _money(summary.net),
            ]
        )
        return str(table)
