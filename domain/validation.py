import calendar
import math
import re
from collections.abc import Iterable
from datetime import date, datetime

from .errors import ValidationError

MAX_NAME_LENGTH = 50
MAX_AMOUNT = 100_000_000.0
DATE_FORMAT = "%Y-%m-%d"

_LOGIN_RE = re.compile(r"[A-Za-z0-9_]{4,20}")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")


def is_non_empty(value: str | None) -> bool:
    return value is not None and bool(str(value).strip())


def is_length_at_most(value: str | None, max_length: int) -> bool:
    return is_non_empty(value) and len(str(value)) <= max_length


def is_numeric(value: str | None) -> bool:
    if not is_non_empty(value):
        return False
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return False
    return math.isfinite(number)


def is_positive_number(value: str | None) -> bool:
    return is_numeric(value) and float(str(value).strip()) > 0


def is_in_range(number: float, minimum: float, maximum: float) -> bool:
    return minimum <= number <= maximum


def is_valid_login(value: str | None) -> bool:
    return is_non_empty(value) and _LOGIN_RE.fullmatch(str(value)) is not None


def is_valid_password(value: str | None) -> bool:
    return is_non_empty(value) and len(str(value)) >= 6


def is_valid_date(value: str | None, fmt: str = DATE_FORMAT) -> bool:
    if not is_non_empty(value):
        return False
    try:
        datetime.strptime(str(value).strip(), fmt)
    except ValueError:
        return False
    return True


def is_unique(name: str, existing: Iterable[str]) -> bool:
    return name not in set(existing)


def parse_ymd(value: str | date) -> date:
    if isinstance(value, date):
        return value
    value = (value or "").strip()
    if not value:
        raise ValidationError("Date value is empty")
    if not re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")
    year, month, day = map(int, value.split("-"))
    if not (1 <= month <= 12):
        raise ValidationError("Invalid month")
    last_day = calendar.monthrange(year, month)[1]
    if not (1 <= day <= last_day):
        raise ValidationError("Invalid day")
    return date(year, month, day)


def parse_amount(value: str | float | int, field: str = "Amount") -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
    elif isinstance(value, str) and is_numeric(value):
        number = float(value.strip())
    else:
        raise ValidationError(f"{field} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a number")
    return round(number, 2)


def require_in_range(
    number: float, minimum: float, maximum: float, field: str = "Amount"
) -> float:
    if not is_in_range(number, minimum, maximum):
        raise ValidationError(f"{field} must be between {minimum:,.0f} and {maximum:,.0f}")
    return number


def require_name(value: str | None, field: str, max_length: int = MAX_NAME_LENGTH) -> str:
    if not is_non_empty(value):
        raise ValidationError(f"{field} cannot be empty")
    name = str(value).strip()
    if not is_length_at_most(name, max_length):
        raise ValidationError(f"{field} must be at most {max_length} characters")
    if _CONTROL_RE.search(name):
        raise ValidationError(f"{field} cannot contain control characters")
    return name


def require_login(value: str | None) -> str:
    if not is_valid_login(value):
        raise ValidationError(
            "Login must be 4-20 characters: latin letters, digits or underscore"
        )
    return str(value)


def require_password(value: str | None) -> str:
    if not is_valid_password(value):
        raise ValidationError("Password must be at least 6 characters")
    return str(value)
