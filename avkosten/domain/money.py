"""Money helpers shared by planned items, receipt lines and staged imports."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0")

# Inputs must stay below this so products still round to cents.
MAX_AMOUNT = Decimal("1e12")

# German standard VAT, applied by the manual "+19%" action.
DEFAULT_RATE = Decimal("0.19")


def round2(value: Decimal) -> Decimal:
    """
    Round to currency minor units (two decimal places, half-up).

    Raises:
        ValueError: If the value is too large to carry cents.
    """
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Amount out of range: {value}") from exc


def to_decimal(value: object, field_name: str = "value") -> Decimal:
    """
    Coerce user or JSON input into a Decimal.

    Floats go through ``str()`` so that ``189.1`` becomes ``Decimal("189.1")``
    rather than its binary expansion.

    Raises:
        ValueError: If the value is not numeric or out of range.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        # Accept German decimal commas from hand-edited drafts.
        text = value.strip().replace(",", ".")
        try:
            result = Decimal(text)
        except InvalidOperation as exc:
            raise ValueError(f"{field_name} must be a number, got {value!r}") from exc
    else:
        raise ValueError(f"{field_name} must be a number, got {value!r}")

    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    if abs(result) >= MAX_AMOUNT:
        raise ValueError(f"{field_name} is out of range, got {value!r}")
    return result


def line_total(quantity: Decimal | int, unit_price: Decimal) -> Decimal:
    """Return round2(quantity x unit price)."""
    return round2(Decimal(quantity) * unit_price)


def apply_rate(unit_price: Decimal, rate: Decimal = DEFAULT_RATE) -> Decimal:
    """
    Mark up a unit price by a fixed rate.

    Each call compounds on the given price; calling it twice on the same line
    yields ``price * 1.19 * 1.19`` (rounded after each step).
    """
    price = round2(unit_price * (Decimal("1") + rate))
    if abs(price) >= MAX_AMOUNT:
        raise ValueError(f"Marked-up unit price is out of range: {price}")
    return price


def format_amount(value: Decimal) -> str:
    """Fixed two-decimal representation used by exports and reports."""
    return f"{round2(value):.2f}"
