from dataclasses import dataclass, replace

from .errors import ValidationError


@dataclass(frozen=True)
class Category:
    owner_id: str
    name: str
    budget_limit: float = 0.0

    def __post_init__(self) -> None:
        limit = round(float(self.budget_limit), 2)
        if limit < 0:
            raise ValidationError("Budget limit cannot be negative")
        object.__setattr__(self, "budget_limit", limit)

    @property
    def key(self) -> str:
        return self.name.casefold()

    @property
    def has_limit(self) -> bool:
        return self.budget_limit > 0

    def matches(self, name: str) -> bool:
        return self.key == (name or "").strip().casefold()

    def with_limit(self, budget_limit: float) -> "Category":
        return replace(self, budget_limit=budget_limit)

    def renamed(self, name: str) -> "Category":
        return replace(self, name=name)

    def with_owner(self, owner_id: str) -> "Category":
        return replace(self, owner_id=owner_id)
