from dataclasses import dataclass, field, replace

from .errors import NotFoundError
from .transactions import Transaction


@dataclass(frozen=True)
class Wallet:
    """A named balance owned by one user.

    ``balance`` is kept incrementally: every change to ``transactions`` goes
    through one of the ``with_*`` methods, which return a new wallet with the
    balance shifted by exactly the amount that entered or left the list.
    """

    owner_id: str
    name: str
    balance: float = 0.0
    transactions: tuple[Transaction, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "balance", round(float(self.balance), 2))
        object.__setattr__(self, "transactions", tuple(self.transactions))

    @property
    def initial_balance(self) -> float:
        return round(self.balance - sum(t.amount for t in self.transactions), 2)

    def find_transaction(self, transaction_id: str) -> Transaction:
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        raise NotFoundError(
            f"Transaction '{transaction_id}' not found in wallet '{self.name}'"
        )

    def with_transaction(self, transaction: Transaction) -> "Wallet":
        return replace(
            self,
            balance=self.balance + transaction.amount,
            transactions=self.transactions + (transaction,),
        )

    def without_transaction(self, transaction_id: str) -> "Wallet":
        removed = self.find_transaction(transaction_id)
        return replace(
            self,
            balance=self.balance - removed.amount,
            transactions=tuple(t for t in self.transactions if t.id != transaction_id),
        )

    def with_replaced_transaction(self, updated: Transaction) -> "Wallet":
        previous = self.find_transaction(updated.id)
        return replace(
            self,
            balance=self.balance + (updated.amount - previous.amount),
            transactions=tuple(
                updated if t.id == updated.id else t for t in self.transactions
            ),
        )

    def renamed(self, name: str) -> "Wallet":
        return replace(self, name=name)

    def with_balance(self, balance: float) -> "Wallet":
        return replace(self, balance=balance)

    def with_owner(self, owner_id: str) -> "Wallet":
        return replace(self, owner_id=owner_id)

    def with_category_renamed(self, old_name: str, new_name: str) -> "Wallet":
        key = old_name.casefold()
        return replace(
            self,
            transactions=tuple(
                replace(t, category=new_name)
                if t.category.casefold() == key and not t.is_transfer
                else t
                for t in self.transactions
            ),
        )
