# app/routers/products.py

import logging

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from app.database import commit_or_conflict, get_db
from app.core.errors import ConflictError, NotFoundError
from app.core.product_cache import ProductCache, get_product_cache
from app.models.products import Product
from app.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
)
from app.schemas.common import MAX_INT, MIN_INT

router = APIRouter(
    prefix="/products",
    tags=["Products"],
)

logger = logging.getLogger("app")

NAME_CONFLICT_DETAIL = "Product with this name already exists"


def _get_product_or_404(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)

    if not product:
        raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")

    return product


def _ensure_name_available(db: Session, name: str, exclude_id: int | None = None):
    query = db.query(Product.id).filter(Product.name == name)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)

    if query.first():
        raise ConflictError(NAME_CONFLICT_DETAIL, code="PRODUCT_NAME_CONFLICT")


@router.post("", response_model=ProductResponse, status_code=201)
def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db),
):
    # Prevent duplicate product names
    _ensure_name_available(db, product_data.name)

    product = Product(
        name=product_data.name,
        price=product_data.price,
    )

    db.add(product)
    commit_or_conflict(db, "create product", NAME_CONFLICT_DETAIL, code="PRODUCT_NAME_CONFLICT")
    db.refresh(product)

    logger.info(f"Product {product.id} created")

    return product


@router.get("", response_model=list[ProductResponse])
def list_products(
    db: Session = Depends(get_db),
):
    return db.query(Product).order_by(Product.id.desc()).all()


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: int = Path(..., ge=MIN_INT, le=MAX_INT),
    db: Session = Depends(get_db),
):
    return _get_product_or_404(db, product_id)


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_data: ProductUpdate,
    product_id: int = Path(..., ge=MIN_INT, le=MAX_INT),
    db: Session = Depends(get_db),
    product_cache: ProductCache = Depends(get_product_cache),
):
    product = _get_product_or_404(db, product_id)

    if product_data.name is not None and product_data.name != product.name:
        _ensure_name_available(db, product_data.name, exclude_id=product.id)
        product.name = product_data.name

    if product_data.price is not None:
        product.price = product_data.price

    commit_or_conflict(db, f"update product {product.id}", NAME_CONFLICT_DETAIL, code="PRODUCT_NAME_CONFLICT")
    db.refresh(product)

    # Cached copies are stale now
    product_cache.invalidate(product.id)

    return product
