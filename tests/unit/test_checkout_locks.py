import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from shop_backend.checkout import locks
from shop_backend.checkout.errors import CheckoutInProgress


def test_lock_is_held_during_block_and_released_after(fake_redis):
    with locks.user_checkout_lock("u1", ttl_seconds=30):
        assert fake_redis.get(locks.lock_key("u1")) is not None
        assert 0 < fake_redis.pttl(locks.lock_key("u1")) <= 30000
    assert fake_redis.get(locks.lock_key("u1")) is None


def test_concurrent_checkout_for_same_user_is_refused(fake_redis):
    with locks.user_checkout_lock("u1"):
        with pytest.raises(CheckoutInProgress):
            with locks.user_checkout_lock("u1"):
                pass
        # un autre utilisateur n'est pas bloqué
        with locks.user_checkout_lock("u2"):
            pass


def test_lock_released_when_block_raises(fake_redis):
    with pytest.raises(RuntimeError):
        with locks.user_checkout_lock("u1"):
            raise RuntimeError("boom")
    assert fake_redis.get(locks.lock_key("u1")) is None


def test_lock_owned_by_someone_else_is_not_deleted(fake_redis):
    with locks.user_checkout_lock("u1", ttl_seconds=30):
        # verrou expiré puis repris par une autre requête
        fake_redis.set(locks.lock_key("u1"), "other-owner")
    assert fake_redis.get(locks.lock_key("u1")) == "other-owner"


def test_redis_unavailable_runs_without_lock(monkeypatch):
    class _DownRedis:
        def set(self, *args, **kwargs):
            raise RedisConnectionError("refused")

    monkeypatch.setattr("shop_backend.infra.redis_client.get_redis", lambda: _DownRedis())
    ran = []
    with locks.user_checkout_lock("u1"):
        ran.append(True)
    assert ran == [True]


def test_disabled_lock_does_not_touch_redis(monkeypatch, fake_redis):
    monkeypatch.setattr(locks, "CHECKOUT_LOCK_ENABLED", False)
    with locks.user_checkout_lock("u1"):
        assert fake_redis.get(locks.lock_key("u1")) is None
