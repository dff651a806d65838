# schemas/product.py

from datetime import datetime

from app.schemas.common import CamelModel, Money, NameText, PositiveAmount


class ProductCreate(CamelModel):
    name: NameText
    price: PositiveAmount


class ProductUpdate(CamelModel):
    name: NameText | None = None
    price: PositiveAmount | None = None


class ProductResponse(CamelModel):
    id: int
    name: str
    price: Money
    created_at: datetime


class ProductSummary(CamelModel):
    id: int
    name: str
    price: Money
