# =========================================================
# PRODUCT CACHE
#
# Read-through cache in front of product lookups.
# - Local tier: TTL expiry + LRU eviction, per process
# - Optional remote tier: redis, shared between workers
# - Redis outage: log once, stop using redis for a cool-down
#   window and keep serving from the local tier
#
# One instance per application, injected with get_product_cache.
# =========================================================

import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal

import redis
from fastapi import Request
from sqlalchemy.orm import Session

from app.models.products import Product

logger = logging.getLogger("app")


@dataclass(frozen=True)
class CachedProduct:
    id: int
    name: str
    price: Decimal

    @classmethod
    def from_model(cls, product: Product) -> "CachedProduct":
        return cls(id=product.id, name=product.name, price=Decimal(product.price))

    def to_json(self) -> str:
        return json.dumps({"id": self.id, "name": self.name, "price": str(self.price)})

    @classmethod
    def from_json(cls, raw) -> "CachedProduct":
        data = json.loads(raw)
        return cls(id=data["id"], name=data["name"], price=Decimal(data["price"]))


class ProductCache:
    def __init__(
        self,
        ttl_seconds: int = 300,
        max_size: int = 1000,
        redis_client: redis.Redis | None = None,
        key_prefix: str = "product:",
        remote_retry_seconds: int = 30,
        clock=time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.key_prefix = key_prefix
        self.remote_retry_seconds = remote_retry_seconds

        self._clock = clock
        self._redis = redis_client
        self._remote_disabled_until = 0.0
        self._entries: OrderedDict[int, tuple[float, CachedProduct]] = OrderedDict()
        self._lock = threading.Lock()

    # ------------------------------
    # LOCAL TIER
    # ------------------------------

    def _local_get(self, product_id: int) -> CachedProduct | None:
        with self._lock:
            entry = self._entries.get(product_id)
            if entry is None:
                return None

            expires_at, product = entry
            if expires_at <= self._clock():
                del self._entries[product_id]
                return None

            self._entries.move_to_end(product_id)
            return product

    def _local_set(self, product: CachedProduct) -> None:
        with self._lock:
            self._entries[product.id] = (self._clock() + self.ttl_seconds, product)
            self._entries.move_to_end(product.id)

            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def _local_delete(self, product_id: int) -> None:
        with self._lock:
            self._entries.pop(product_id, None)

    # ------------------------------
    # REMOTE TIER
    # ------------------------------

    @property
    def remote_available(self) -> bool:
        return self._redis is not None and self._clock() >= self._remote_disabled_until

    def _remote_failed(self, error: redis.RedisError) -> None:
        if self._remote_disabled_until <= self._clock():
            logger.warning(f"Redis unavailable, falling back to in-memory product cache: {error}")
        self._remote_disabled_until = self._clock() + self.remote_retry_seconds

    def _remote_get(self, product_id: int) -> CachedProduct | None:
        if not self.remote_available:
            return None
        try:
            raw = self._redis.get(f"{self.key_prefix}{product_id}")
        except redis.RedisError as e:
            self._remote_failed(e)
            return None

        if not raw:
            return None

        try:
            return CachedProduct.from_json(raw)
        except (ValueError, KeyError, TypeError, ArithmeticError) as e:
            # Unreadable entries count as a miss
            logger.warning(f"Discarding unreadable cache entry for product {product_id}: {e!r}")
            return None

    def _remote_set(self, product: CachedProduct) -> None:
        if not self.remote_available:
            return
        try:
            self._redis.set(f"{self.key_prefix}{product.id}", product.to_json(), ex=self.ttl_seconds)
        except redis.RedisError as e:
            self._remote_failed(e)

    def _remote_delete(self, product_id: int) -> None:
        if not self.remote_available:
            return
        try:
            self._redis.delete(f"{self.key_prefix}{product_id}")
        except redis.RedisError as e:
            self._remote_failed(e)

    # ------------------------------
    # PUBLIC API
    # ------------------------------

    def lookup(self, product_id: int) -> CachedProduct | None:
        """Cached product or None on a miss. Never touches the database."""
        product = self._local_get(product_id)
        if product is not None:
            return product

        product = self._remote_get(product_id)
        if product is not None:
            self._local_set(product)
        return product

    def get(self, product_id: int, db: Session) -> CachedProduct | None:
        """Read-through lookup; falls back to the database on a miss."""
        product = self.lookup(product_id)
        if product is not None:
            return product

        model = db.get(Product, product_id)
        if model is None:
            self.invalidate(product_id)
            return None

        product = CachedProduct.from_model(model)
        self._local_set(product)
        self._remote_set(product)
        return product

    def invalidate(self, product_id: int) -> None:
        self._local_delete(product_id)
        self._remote_delete(product_id)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict:
        with self._lock:
            return {
                "size": len(self._entries),
                "entries": list(self._entries.keys()),
                "remote": self.remote_available,
            }


def build_product_cache(settings) -> ProductCache:
    redis_client = None
    if settings.REDIS_URL:
        redis_client = redis.Redis.from_url(
            settings.REDIS_URL,
            socket_connect_timeout=1,
            socket_timeout=1,
        )

    return ProductCache(
        ttl_seconds=settings.PRODUCT_CACHE_TTL_SECONDS,
        max_size=settings.PRODUCT_CACHE_MAX_SIZE,
        redis_client=redis_client,
    )


def get_product_cache(request: Request) -> ProductCache:
    return request.app.state.product_cache
