# schemas/common.py

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from app.core.money import MoneyParseError, to_decimal, to_money_string


# Signed INT column limits
MIN_INT = 1
MAX_INT = 2147483647

# Numeric(10, 2) column limit
MAX_MONEY = Decimal("99999999.99")
MONEY_PLACES = 2

# Letters, digits, whitespace and basic punctuation. Anything else is rejected, never escaped.
TEXT_PATTERN = r"^[a-zA-Z0-9\s\-_.,áàâãéêíóôõúçÁÀÂÃÉÊÍÓÔÕÚÇ]*$"


def _read_amount(value):
    if isinstance(value, bool):
        raise PydanticCustomError("decimal_type", "Input should be a valid number")

    if isinstance(value, (str, float)):
        raw = value if isinstance(value, str) else repr(value)
        try:
            return to_decimal(raw)
        except MoneyParseError:
            raise PydanticCustomError("decimal_parsing", "Input should be a valid number") from None

    return value


# Incoming amounts: JSON numbers or plain ASCII numeric strings
PositiveAmount = Annotated[
    Decimal,
    Field(gt=0, le=MAX_MONEY, decimal_places=MONEY_PLACES),
    BeforeValidator(_read_amount),
]
NonNegativeAmount = Annotated[
    Decimal,
    Field(ge=0, le=MAX_MONEY, decimal_places=MONEY_PLACES),
    BeforeValidator(_read_amount),
]

# JSON integers only: 1.5, 2.0, "1" and true are all refused
StrictId = Annotated[int, Field(strict=True, ge=MIN_INT, le=MAX_INT)]


CodeText = Annotated[str, Field(min_length=1, max_length=50, pattern=TEXT_PATTERN)]
NameText = Annotated[str, Field(min_length=1, max_length=100, pattern=TEXT_PATTERN)]


# Money leaves the API as a string with exactly two fraction digits
Money = Annotated[
    Decimal,
    PlainSerializer(to_money_string, return_type=str, when_used="json"),
]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )
