import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.core.product_cache import ProductCache, get_product_cache
from app.models.products import Product


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def product_cache():
    return ProductCache(ttl_seconds=300, max_size=100)


@pytest.fixture
def client(db_session, product_cache):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_product_cache] = lambda: product_cache

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def make_product(db_session):
    def _make_product(name="Test Product", price="50.00"):
        product = Product(name=name, price=Decimal(price))
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make_product


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def sale_payload(product):
    def _sale_payload(**overrides):
        payload = {
            "code": "SALE-001",
            "customerName": "Maria Silva",
            "items": [
                {"productId": product.id, "quantity": 2, "unitPrice": 50.00},
            ],
        }
        payload.update(overrides)
        return payload

    return _sale_payload
