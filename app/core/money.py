# app/core/money.py
#
# Money is always a Decimal quantized to two places with half-up rounding.
# Binary floats are refused so no value ever carries float drift.

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union


MONEY_SCALE = 2

MoneyInput = Union[str, int, Decimal]

# Plain ASCII decimal notation only: no digit-group underscores, no non-ASCII digits
NUMBER_TEXT = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?", re.ASCII)


class MoneyParseError(ValueError):
    """Raised when a value cannot be read as a monetary amount."""


def to_decimal(value: MoneyInput) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{type(value).__name__} is not accepted as a money value")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        if not NUMBER_TEXT.fullmatch(value.strip()):
            raise MoneyParseError(f"Invalid money value: {value!r}")
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise MoneyParseError(f"Invalid money value: {value!r}") from None
    else:
        raise TypeError(f"{type(value).__name__} is not accepted as a money value")

    if not result.is_finite():
        raise MoneyParseError(f"Invalid money value: {value!r}")

    return result


def round_money(value: MoneyInput, scale: int = MONEY_SCALE) -> Decimal:
    exponent = Decimal(1).scaleb(-scale)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def to_money_string(value: MoneyInput, scale: int = MONEY_SCALE) -> str:
    return format(round_money(value, scale), "f")


def add_money(*values: MoneyInput) -> Decimal:
    total = sum((to_decimal(value) for value in values), Decimal(0))
    return round_money(total)


def subtract_money(value: MoneyInput, subtractor: MoneyInput) -> Decimal:
    return round_money(to_decimal(value) - to_decimal(subtractor))


def multiply_money(value: MoneyInput, multiplier: MoneyInput) -> Decimal:
    return round_money(to_decimal(value) * to_decimal(multiplier))


def divide_money(value: MoneyInput, divisor: MoneyInput) -> Decimal:
    # Callers must not pass a zero divisor
    return round_money(to_decimal(value) / to_decimal(divisor))


def is_greater_than(a: MoneyInput, b: MoneyInput) -> bool:
    return to_decimal(a) > to_decimal(b)


def is_less_than(a: MoneyInput, b: MoneyInput) -> bool:
    return to_decimal(a) < to_decimal(b)


def is_greater_or_equal(a: MoneyInput, b: MoneyInput) -> bool:
    return to_decimal(a) >= to_decimal(b)


def max_money(a: MoneyInput, b: MoneyInput) -> Decimal:
    return round_money(a) if is_greater_or_equal(a, b) else round_money(b)


ZERO = round_money(0)
