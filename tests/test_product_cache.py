import logging
from decimal import Decimal

import redis

from app.core.product_cache import CachedProduct, ProductCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.calls = 0

    def get(self, key):
        self.calls += 1
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.calls += 1
        self.store[key] = value

    def delete(self, key):
        self.calls += 1
        self.store.pop(key, None)


class BrokenRedis:
    def __init__(self):
        self.calls = 0

    def _fail(self, *args, **kwargs):
        self.calls += 1
        raise redis.exceptions.ConnectionError("Connection refused")

    get = set = delete = _fail


def _product(product_id, price="10.00"):
    return CachedProduct(id=product_id, name=f"Product {product_id}", price=Decimal(price))


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = ProductCache(ttl_seconds=60, clock=clock)
    cache._local_set(_product(1))

    clock.advance(59)
    assert cache.lookup(1) == _product(1)

    clock.advance(1)
    assert cache.lookup(1) is None
    assert cache.stats()["size"] == 0


def test_least_recently_used_entry_is_evicted():
    cache = ProductCache(ttl_seconds=60, max_size=2)
    cache._local_set(_product(1))
    cache._local_set(_product(2))

    # Touch 1 so that 2 becomes the oldest
    cache.lookup(1)
    cache._local_set(_product(3))

    assert cache.lookup(2) is None
    assert cache.lookup(1) is not None
    assert cache.lookup(3) is not None
    assert cache.stats()["size"] == 2


def test_invalidate_and_clear():
    cache = ProductCache()
    cache._local_set(_product(1))
    cache._local_set(_product(2))

    cache.invalidate(1)
    assert cache.lookup(1) is None
    assert cache.lookup(2) is not None

    cache.clear()
    assert cache.stats() == {"size": 0, "entries": [], "remote": False}


def test_get_reads_through_to_database(db_session, make_product):
    product = make_product(name="Keyboard", price="120.50")
    cache = ProductCache()

    cached = cache.get(product.id, db_session)

    assert cached == CachedProduct(id=product.id, name="Keyboard", price=Decimal("120.50"))
    assert cache.stats()["entries"] == [product.id]

    # Served from cache even after the row changes
    product.price = Decimal("99.99")
    db_session.commit()
    assert cache.get(product.id, db_session).price == Decimal("120.50")


def test_get_missing_product(db_session):
    cache = ProductCache()
    cache._local_set(_product(999))

    # A local hit is trusted; only misses reach the database
    assert cache.get(999, db_session) is not None

    cache.invalidate(999)
    assert cache.get(999, db_session) is None
    assert cache.stats()["size"] == 0


def test_remote_tier_is_shared():
    remote = FakeRedis()
    writer = ProductCache(redis_client=remote)
    reader = ProductCache(redis_client=remote)

    writer._remote_set(_product(5, "3.50"))

    assert reader.lookup(5) == _product(5, "3.50")
    # Promoted to the reader's local tier
    assert reader.stats()["entries"] == [5]

    writer.invalidate(5)
    assert "product:5" not in remote.store


def test_redis_outage_falls_back_to_local_tier(caplog, db_session, make_product):
    product = make_product(name="Mouse", price="25.00")
    clock = FakeClock()
    remote = BrokenRedis()
    cache = ProductCache(redis_client=remote, remote_retry_seconds=30, clock=clock)

    with caplog.at_level(logging.WARNING, logger="app"):
        first = cache.get(product.id, db_session)
        second = cache.get(product.id, db_session)

    assert first == second
    assert first.price == Decimal("25.00")
    assert not cache.remote_available
    # One failed call, then the remote tier is skipped for the cool-down
    assert remote.calls == 1
    warnings = [record for record in caplog.records if "Redis unavailable" in record.getMessage()]
    assert len(warnings) == 1

    clock.advance(30)
    assert cache.remote_available


def test_unreadable_remote_entry_is_a_miss(caplog, db_session, make_product):
    product = make_product(name="Monitor", price="899.90")
    remote = FakeRedis()
    remote.store[f"product:{product.id}"] = "not json"
    remote.store["product:8"] = '{"id": 8, "name": "Broken"}'
    cache = ProductCache(redis_client=remote)

    with caplog.at_level(logging.WARNING, logger="app"):
        assert cache.lookup(8) is None
        cached = cache.get(product.id, db_session)

    assert cached.price == Decimal("899.90")
    # Overwritten with a readable copy
    assert CachedProduct.from_json(remote.store[f"product:{product.id}"]) == cached
    assert any("unreadable cache entry" in record.getMessage() for record in caplog.records)
