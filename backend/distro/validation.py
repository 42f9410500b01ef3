from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from .errors import ValidationError
from .time_utils import parse_iso_datetime


# Maximum money amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

MAX_DISCOUNT = Decimal("100")


def coerce_int(key: str, value: Any) -> int:
    """
    Strict integer coercion for JSON/CLI input.

    Rejects booleans, floats, decimals-in-strings and scientific notation.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def require_int(payload: dict, key: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    if key not in payload or payload[key] is None:
        raise ValidationError(f"{key} is required")
    value = coerce_int(key, payload[key])
    if minimum is not None and value < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{key} must be <= {maximum}")
    return value


def optional_int(payload: dict, key: str, default: int, *, minimum: int | None = None) -> int:
    if payload.get(key) is None:
        return default
    return require_int(payload, key, minimum=minimum)


def require_amount_cents(payload: dict, key: str = "amount_cents") -> int:
    return require_int(payload, key, minimum=0, maximum=MAX_AMOUNT_CENTS)


def parse_discount(value: Any) -> Decimal:
    """Discount percentage in [0, 100] with at most two decimal places."""
    if value is None:
        return Decimal("0")
    if isinstance(value, bool):
        raise ValidationError("discount_percentage must be a number")
    try:
        discount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError("discount_percentage must be a number")
    if not discount.is_finite():
        raise ValidationError("discount_percentage must be a number")
    if discount < 0 or discount > MAX_DISCOUNT:
        raise ValidationError("discount_percentage must be between 0 and 100")
    if discount.as_tuple().exponent < -2:
        raise ValidationError("discount_percentage allows at most two decimal places")
    return discount


def optional_str(payload: dict, key: str, *, max_length: int = 255) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if len(value) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return value


def require_str(payload: dict, key: str, *, max_length: int = 255) -> str:
    value = optional_str(payload, key, max_length=max_length)
    if value is None:
        raise ValidationError(f"{key} is required")
    return value


def require_choice(value: Any, key: str, choices: Iterable[str]) -> str:
    choices = tuple(choices)
    if value not in choices:
        raise ValidationError(f"{key} must be one of: {', '.join(choices)}")
    return value


def optional_datetime(payload: dict, key: str) -> datetime | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")


@dataclass(frozen=True)
class OrderLineInput:
    """A validated draft line as supplied by the order creator."""
    product_id: int
    quantity: int
    bonus_quantity: int = 0
    discount_percentage: Decimal = Decimal("0")

    @property
    def needed_stock(self) -> int:
        return self.quantity + self.bonus_quantity


def parse_order_line(payload: dict | None) -> OrderLineInput:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return OrderLineInput(
        product_id=require_int(payload, "product_id", minimum=1),
        quantity=require_int(payload, "quantity", minimum=1),
        bonus_quantity=optional_int(payload, "bonus_quantity", 0, minimum=0),
        discount_percentage=parse_discount(payload.get("discount_percentage")),
    )
