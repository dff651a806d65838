# =========================================================
# SALES ROUTER
#
# Request fields are validated by the schemas and parameters below;
# failures are classified by the validation error handler:
# - syntactic failures (missing, wrong type, malformed) -> 400
# - semantic failures (range, length, charset, enum)     -> 422
# Business-rule and persistence errors come from the service
# layer as typed errors.
# =========================================================

from datetime import date

from fastapi import APIRouter, Depends, Path, Query, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.config import settings
from app.core.product_cache import ProductCache, get_product_cache
from app.core.rate_limiter import limiter
from app.schemas.common import MAX_INT, MIN_INT, TEXT_PATTERN
from app.schemas.sale import (
    SaleCreate,
    SaleListParams,
    SaleListResponse,
    SaleResponse,
    SaleUpdate,
)
from app.services import sales as sales_service

router = APIRouter(prefix="/sales", tags=["Sales"])


def sale_list_params(
    page: int = Query(1, ge=MIN_INT, le=MAX_INT),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    search: str | None = Query(None, max_length=255, pattern=TEXT_PATTERN),
    date_from: date | None = Query(None, alias="dateFrom"),
    date_to: date | None = Query(None, alias="dateTo"),
) -> SaleListParams:
    try:
        return SaleListParams(
            page=page,
            limit=limit,
            search=search,
            date_from=date_from,
            date_to=date_to,
        )
    except ValidationError as e:
        # Blank search or an inverted date range
        raise RequestValidationError(e.errors(include_url=False)) from None


# =========================================================
# CREATE SALE
# =========================================================
@router.post("", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.SALES_WRITE_RATE_LIMIT)
def create_sale(
    request: Request,
    sale_data: SaleCreate,
    db: Session = Depends(get_db),
    product_cache: ProductCache = Depends(get_product_cache),
):
    return sales_service.create_sale(db, sale_data, product_cache)


# =========================================================
# LIST SALES
# =========================================================
@router.get("", response_model=SaleListResponse)
def list_sales(
    params: SaleListParams = Depends(sale_list_params),
    db: Session = Depends(get_db),
):
    return sales_service.list_sales(db, params)


# =========================================================
# GET SINGLE SALE
# =========================================================
@router.get("/{sale_id}", response_model=SaleResponse)
def get_sale(
    sale_id: int = Path(..., ge=MIN_INT, le=MAX_INT),
    db: Session = Depends(get_db),
):
    return sales_service.get_sale(db, sale_id)


# =========================================================
# UPDATE SALE
# =========================================================
@router.put("/{sale_id}", response_model=SaleResponse)
@limiter.limit(settings.SALES_WRITE_RATE_LIMIT)
def update_sale(
    request: Request,
    sale_data: SaleUpdate,
    sale_id: int = Path(..., ge=MIN_INT, le=MAX_INT),
    db: Session = Depends(get_db),
    product_cache: ProductCache = Depends(get_product_cache),
):
    return sales_service.update_sale(db, sale_id, sale_data, product_cache)


# =========================================================
# DELETE SALE
# =========================================================
@router.delete("/{sale_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_sale(
    sale_id: int = Path(..., ge=MIN_INT, le=MAX_INT),
    db: Session = Depends(get_db),
):
    sales_service.delete_sale(db, sale_id)

    return None
