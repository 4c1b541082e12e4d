from bookery.cache import PendingBookingStore
from tests.conftest import FakeRedis


class BrokenRedis:
    def get(self, key):
        raise ConnectionError("redis down")

    def setex(self, key, ttl, value):
        raise ConnectionError("redis down")

    def delete(self, key):
        raise ConnectionError("redis down")


def test_hint_round_trip_and_clear():
    redis = FakeRedis()
    store = PendingBookingStore(redis_client=redis, ttl=60)

    assert store.save("client", {"reference": "ref_1", "booking_type": "beauty"}) is True
    assert "pending_booking:client" in redis.store
    assert store.get("client") == {"reference": "ref_1", "booking_type": "beauty"}

    assert store.clear("client") is True
    assert store.get("client") is None


def test_redis_failures_do_not_raise():
    store = PendingBookingStore(redis_client=BrokenRedis())

    assert store.save("client", {"reference": "ref_1"}) is False
    assert store.get("client") is None
    assert store.clear("client") is False
