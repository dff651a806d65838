# schemas/sale.py

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List

from pydantic import BeforeValidator, Field, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from app.models.sales import SaleStatus
from app.schemas.common import (
    CamelModel,
    CodeText,
    Money,
    NameText,
    NonNegativeAmount,
    PositiveAmount,
    StrictId,
)
from app.schemas.product import ProductSummary


def _status_text(value):
    # 1 or true is a type error, not an unknown status
    if value is not None and not isinstance(value, str):
        raise PydanticCustomError("string_type", "Input should be a valid string")
    return value


StatusInput = Annotated[SaleStatus, BeforeValidator(_status_text)]


class SaleItemCreate(CamelModel):
    product_id: StrictId
    quantity: StrictId
    unit_price: PositiveAmount
    item_discount: NonNegativeAmount | None = None

    @field_validator("item_discount")
    @classmethod
    def discount_within_gross(cls, value: Decimal | None, info: ValidationInfo):
        quantity = info.data.get("quantity")
        unit_price = info.data.get("unit_price")

        if value is None or quantity is None or unit_price is None:
            return value

        if value > unit_price * quantity:
            raise PydanticCustomError(
                "item_discount_exceeds",
                "Item discount exceeds the item gross value",
            )
        return value


class SaleCreate(CamelModel):
    code: CodeText
    customer_name: NameText
    sale_discount: NonNegativeAmount | None = None
    status: StatusInput = SaleStatus.OPEN
    items: List[SaleItemCreate] = Field(..., min_length=1)


class SaleUpdate(CamelModel):
    code: CodeText | None = None
    customer_name: NameText | None = None
    sale_discount: NonNegativeAmount | None = None
    status: StatusInput | None = None
    items: List[SaleItemCreate] | None = Field(None, min_length=1)


class SaleListParams(CamelModel):
    page: int = 1
    limit: int
    search: str | None = Field(None, min_length=1)
    date_from: date | None = None
    date_to: date | None = None

    @field_validator("date_to")
    @classmethod
    def range_is_ordered(cls, value: date | None, info: ValidationInfo):
        date_from = info.data.get("date_from")

        if value is not None and date_from is not None and date_from > value:
            raise PydanticCustomError("date_range", "dateTo must not be earlier than dateFrom")
        return value


class SaleItemResponse(CamelModel):
    id: int
    product_id: int
    quantity: int
    unit_price: Money
    item_discount: Money
    gross_value: Money
    net_value: Money
    product: ProductSummary | None = None


class SaleResponse(CamelModel):
    id: int
    code: str
    customer_name: str
    status: str
    sale_discount: Money
    gross_total: Money
    total_amount: Money
    created_at: datetime
    items: List[SaleItemResponse]


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class SaleTotals(CamelModel):
    total_amount: Money
    sales_count: int
    items_quantity: int


class SaleListResponse(CamelModel):
    sales: List[SaleResponse]
    pagination: Pagination
    totals: SaleTotals
