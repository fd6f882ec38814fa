import uuid
from dataclasses import dataclass, field, replace
from datetime import date as dt_date

from .errors import ValidationError
from .validation import parse_ymd

TRANSFER_CATEGORY = "Transfer"


def new_transaction_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Transaction:
    amount: float
    category: str
    date: dt_date | str = field(default_factory=dt_date.today)
    id: str = field(default_factory=new_transaction_id)
    transfer_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", parse_ymd(self.date))
        try:
            amount = round(float(self.amount), 2)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Transaction amount must be a number") from exc
        object.__setattr__(self, "amount", amount)
        if not str(self.id or "").strip():
            raise ValidationError("Transaction id cannot be empty")
        object.__setattr__(self, "category", str(self.category or "").strip())

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    @property
    def is_transfer(self) -> bool:
        return self.transfer_id is not None

    @property
    def type(self) -> str:
        return "income" if self.is_income else "expense"

    def edited(self, *, amount: float, category: str, date: dt_date | str) -> "Transaction":
        return replace(self, amount=amount, category=category, date=date)
