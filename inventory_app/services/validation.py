"""
Shared Validation
Input checks and money arithmetic used by the purchasing and stock services
"""
from typing import Any, Optional, Type
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum

from inventory_app.core.config import settings
from inventory_app.core.exceptions import ValidationError

CENT = Decimal(1).scaleb(-settings.CURRENCY_DECIMAL_PLACES)
ZERO = Decimal("0.00")


def enum_value(value: Any) -> Any:
    """Unwrap an Enum member to its stored value"""
    return value.value if isinstance(value, Enum) else value


def require_choice(value: Any, choices: Type[Enum], field: str) -> str:
    """Return the stored value of an enum-constrained field"""
    value = enum_value(value)
    allowed = [member.value for member in choices]
    if value not in allowed:
        raise ValidationError(
            f"Invalid {field} '{value}'. Allowed: {', '.join(allowed)}",
            field=field,
        )
    return value


def require_quantity(value: Any, field: str, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be a whole number", field=field)
    if value < minimum:
        raise ValidationError(f"{field} must be at least {minimum}", field=field)
    return value


def quantize(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value: Any, field: str, default: Optional[Decimal] = ZERO) -> Decimal:
    """
    Parse a non-negative amount with at most two decimal places

    None falls back to the default; anything unparseable, negative or
    carrying sub-cent precision is rejected.
    """
    if value is None:
        if default is None:
            raise ValidationError(f"{field} is required", field=field)
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number", field=field)
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    if amount.as_tuple().exponent < -settings.CURRENCY_DECIMAL_PLACES:
        raise ValidationError(
            f"{field} cannot have more than {settings.CURRENCY_DECIMAL_PLACES} decimal places",
            field=field,
        )
    return quantize(amount)


def check_notes(notes: Optional[str], field: str = "notes",
                max_length: int = settings.NOTES_MAX_LENGTH) -> Optional[str]:
    if notes is None:
        return None
    if len(notes) > max_length:
        raise ValidationError(
            f"{field} cannot exceed {max_length} characters",
            field=field,
        )
    return notes


def line_total(quantity: int, unit_price: Decimal, discount: Decimal, tax: Decimal) -> Decimal:
    """quantity x unit price - discount + tax"""
    return quantize(quantity * unit_price - discount + tax)
