# models/sales.py

import enum

from sqlalchemy import Column, Index, Integer, DateTime, Numeric, String
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.database import Base


class SaleStatus(str, enum.Enum):
    OPEN = "open"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# A finalized sale can no longer be edited
FINALIZED_STATUSES = {SaleStatus.COMPLETED.value, SaleStatus.CANCELLED.value}


class Sale(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)

    code = Column(String(50), nullable=False, unique=True)
    customer_name = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default=SaleStatus.OPEN.value)

    sale_discount = Column(Numeric(10, 2), nullable=False, default=0)
    gross_total = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    items = relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    __table_args__ = (
        Index("ix_sales_created_id", "created_at", "id"),
    )
