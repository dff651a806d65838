# =========================================================
# SALE SERVICE
#
# Every write runs as one transaction: the sale and all its
# items are committed together or not at all.
#
# Typed errors (app.core.errors) are raised here and turned
# into problem documents by the exception handlers.
# =========================================================

import logging
import math
from datetime import datetime, time

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.errors import (
    AppError,
    BusinessRuleError,
    ConflictError,
    InternalServerError,
    NotFoundError,
)
from app.core.money import ZERO, is_greater_than, round_money
from app.core.product_cache import ProductCache
from app.database import commit_or_conflict
from app.models.sale_items import SaleItem
from app.models.sales import FINALIZED_STATUSES, Sale
from app.schemas.sale import SaleCreate, SaleItemCreate, SaleListParams, SaleUpdate
from app.services.sale_calculations import (
    SaleCalculationRequest,
    SaleCalculationResult,
    SaleItemInput,
    compute_sale_totals,
)
from app.schemas.common import MAX_MONEY

logger = logging.getLogger("app")


# =========================================================
# HELPERS
# =========================================================

def _sale_query(db: Session):
    return db.query(Sale).options(joinedload(Sale.items).joinedload(SaleItem.product))


def _find_sale(db: Session, sale_id: int) -> Sale:
    sale = _sale_query(db).filter(Sale.id == sale_id).first()

    if not sale:
        raise NotFoundError("Sale not found", code="SALE_NOT_FOUND")

    return sale


def _ensure_code_available(db: Session, code: str, exclude_id: int | None = None):
    query = db.query(Sale.id).filter(Sale.code == code)
    if exclude_id is not None:
        query = query.filter(Sale.id != exclude_id)

    if query.first():
        raise ConflictError(
            f"A sale with code '{code}' already exists",
            code="SALE_CODE_CONFLICT",
        )


def _ensure_products_exist(db: Session, items: list[SaleItemCreate], product_cache: ProductCache):
    for item in items:
        if product_cache.get(item.product_id, db) is None:
            raise NotFoundError(
                f"Product with ID {item.product_id} not found",
                code="PRODUCT_NOT_FOUND",
            )


def _calculate(items: list[SaleItemInput], sale_discount) -> SaleCalculationResult:
    result = compute_sale_totals(SaleCalculationRequest(items=items, sale_discount=sale_discount))

    if is_greater_than(result.gross_total, MAX_MONEY):
        raise BusinessRuleError(
            f"Sale gross total exceeds the maximum of {MAX_MONEY}",
            code="SALE_TOTAL_TOO_LARGE",
        )

    return result


def _apply_totals(sale: Sale, result: SaleCalculationResult, replace_items: bool):
    sale.sale_discount = result.sale_discount
    sale.gross_total = result.gross_total
    sale.total_amount = result.sale_total

    if replace_items:
        sale.items.clear()
        for calculated in result.items:
            sale.items.append(
                SaleItem(
                    product_id=calculated.product_id,
                    quantity=calculated.quantity,
                    unit_price=calculated.unit_price,
                    item_discount=calculated.item_discount,
                    gross_value=calculated.gross_value,
                    net_value=calculated.net_value,
                )
            )
    else:
        for item, calculated in zip(sale.items, result.items):
            item.item_discount = calculated.item_discount
            item.gross_value = calculated.gross_value
            item.net_value = calculated.net_value


def _to_inputs(items: list[SaleItemCreate]) -> list[SaleItemInput]:
    return [
        SaleItemInput(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            item_discount=item.item_discount,
        )
        for item in items
    ]


def _run_in_transaction(db: Session, action: str, work):
    try:
        result = work()
        commit_or_conflict(
            db,
            action,
            "The sale conflicts with an existing record",
            code="SALE_CONFLICT",
        )
        return result

    except AppError:
        db.rollback()
        raise

    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Database error while trying to {action}")
        raise InternalServerError(f"Unable to {action}")


# =========================================================
# CREATE SALE
# =========================================================
def create_sale(db: Session, sale_data: SaleCreate, product_cache: ProductCache) -> Sale:
    def work():
        _ensure_code_available(db, sale_data.code)
        _ensure_products_exist(db, sale_data.items, product_cache)

        result = _calculate(_to_inputs(sale_data.items), sale_data.sale_discount)

        sale = Sale(
            code=sale_data.code,
            customer_name=sale_data.customer_name,
            status=sale_data.status.value,
        )
        _apply_totals(sale, result, replace_items=True)

        db.add(sale)
        db.flush()
        return sale.id

    sale_id = _run_in_transaction(db, "create sale", work)
    logger.info(f"Sale {sale_id} created ({sale_data.code})")

    return _find_sale(db, sale_id)


# =========================================================
# LIST SALES
# =========================================================
def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _list_filters(params: SaleListParams) -> list:
    filters = []

    if params.date_from:
        filters.append(Sale.created_at >= datetime.combine(params.date_from, time.min))

    if params.date_to:
        filters.append(Sale.created_at <= datetime.combine(params.date_to, time.max))

    if params.search:
        pattern = f"%{_escape_like(params.search)}%"
        filters.append(
            or_(
                Sale.code.ilike(pattern, escape="\\"),
                Sale.customer_name.ilike(pattern, escape="\\"),
            )
        )

    return filters


def list_sales(db: Session, params: SaleListParams) -> dict:
    filters = _list_filters(params)
    offset = (params.page - 1) * params.limit

    total = db.query(func.count(Sale.id)).filter(*filters).scalar()

    sales = (
        _sale_query(db)
        .filter(*filters)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(params.limit)
        .offset(offset)
        .all()
    )

    total_amount = (
        db.query(func.coalesce(func.sum(Sale.total_amount), 0))
        .filter(*filters)
        .scalar()
    )

    items_quantity = (
        db.query(func.coalesce(func.sum(SaleItem.quantity), 0))
        .select_from(SaleItem)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(*filters)
        .scalar()
    )

    return {
        "sales": sales,
        "pagination": {
            "page": params.page,
            "limit": params.limit,
            "total": total,
            "total_pages": math.ceil(total / params.limit),
        },
        "totals": {
            "total_amount": round_money(str(total_amount or ZERO)),
            "sales_count": total,
            "items_quantity": int(items_quantity or 0),
        },
    }


# =========================================================
# GET SALE
# =========================================================
def get_sale(db: Session, sale_id: int) -> Sale:
    return _find_sale(db, sale_id)


# =========================================================
# UPDATE SALE
# =========================================================
def update_sale(db: Session, sale_id: int, sale_data: SaleUpdate, product_cache: ProductCache) -> Sale:
    def work():
        sale = _find_sale(db, sale_id)

        if sale.status in FINALIZED_STATUSES:
            raise BusinessRuleError(
                f"Cannot modify a sale with finished status '{sale.status}'",
                code="SALE_FINALIZED",
            )

        if sale_data.code is not None and sale_data.code != sale.code:
            _ensure_code_available(db, sale_data.code, exclude_id=sale.id)
            sale.code = sale_data.code

        if sale_data.customer_name is not None:
            sale.customer_name = sale_data.customer_name

        if sale_data.status is not None:
            sale.status = sale_data.status.value

        if sale_data.items is not None:
            _ensure_products_exist(db, sale_data.items, product_cache)
            result = _calculate(_to_inputs(sale_data.items), sale_data.sale_discount)
            _apply_totals(sale, result, replace_items=True)

        elif sale_data.sale_discount is not None:
            # Re-apply the new sale discount over the stored prices
            existing = [
                SaleItemInput(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=str(item.unit_price),
                )
                for item in sale.items
            ]
            result = _calculate(existing, sale_data.sale_discount)
            _apply_totals(sale, result, replace_items=False)

        db.flush()

    _run_in_transaction(db, f"update sale {sale_id}", work)
    logger.info(f"Sale {sale_id} updated")

    return _find_sale(db, sale_id)


# =========================================================
# DELETE SALE
# =========================================================
def delete_sale(db: Session, sale_id: int) -> None:
    def work():
        sale = _find_sale(db, sale_id)

        if sale.status in FINALIZED_STATUSES:
            raise BusinessRuleError(
                f"Cannot delete a sale with finished status '{sale.status}'",
                code="SALE_FINALIZED",
            )

        db.delete(sale)

    _run_in_transaction(db, f"delete sale {sale_id}", work)
    logger.info(f"Sale {sale_id} deleted")
